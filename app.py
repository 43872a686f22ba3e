"""Main entry point for the application."""

import atexit

from hawkerhub import create_app

app = create_app()
atexit.register(app.extensions["notifications"].shutdown)


if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5000)  # nosec
