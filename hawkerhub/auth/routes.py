from firebase_admin import auth, firestore
from flask import current_app, g, jsonify, request, session
from flask_wtf.csrf import generate_csrf

from hawkerhub.core.constants import USERS_COLLECTION
from hawkerhub.extensions import csrf
from hawkerhub.utils import to_json_safe, validate_form

from . import bp
from .decorators import login_required
from .forms import ProfileForm


@bp.route("/session_login", methods=["POST"])
@csrf.exempt
def session_login():
    """
    Called by the client after a successful Firebase sign-in (phone OTP or
    email link). Verifies the ID token and creates a server-side session.
    """
    id_token = (request.get_json(silent=True) or {}).get("idToken")
    if not id_token:
        return jsonify({"status": "error", "message": "idToken is required."}), 400
    try:
        decoded_token = auth.verify_id_token(id_token)
    except Exception as e:
        current_app.logger.error(f"Error during session login: {e}")
        return jsonify({"status": "error", "message": "Invalid token."}), 401

    uid = decoded_token["uid"]
    session.clear()
    session["user_id"] = uid

    db = firestore.client()
    user_doc = db.collection(USERS_COLLECTION).document(uid).get()
    if not user_doc.exists:
        # Signed in but no profile yet; the client routes to profile setup.
        current_app.logger.info(f"User {uid} signed in without a profile.")
        return jsonify({"status": "profile_required", "uid": uid})

    session["role"] = (user_doc.to_dict() or {}).get("role")
    return jsonify({"status": "success", "uid": uid, "role": session["role"]})


@bp.route("/profile", methods=["POST"])
def save_profile():
    """Create or update the profile of the signed-in user."""
    uid = session.get("user_id")
    if not uid:
        return jsonify({"message": "Authentication required."}), 401

    form = validate_form(ProfileForm())
    profile = {
        field.name: field.data
        for field in form
        if field.data not in (None, "")
    }
    profile["updatedAt"] = firestore.SERVER_TIMESTAMP

    db = firestore.client()
    user_ref = db.collection(USERS_COLLECTION).document(uid)
    if not user_ref.get().exists:
        profile["createdAt"] = firestore.SERVER_TIMESTAMP
        profile["onboardingStatus"] = {"profileCompleted": True}
    user_ref.set(profile, merge=True)
    session["role"] = profile["role"]

    current_app.logger.info(f"Profile saved for user {uid}")
    return jsonify(to_json_safe({"uid": uid, **profile}))


@bp.route("/me", methods=["GET"])
@login_required
def me():
    """Return the signed-in user's profile."""
    return jsonify(to_json_safe(g.user))


@bp.route("/logout", methods=["POST"])
def logout():
    """
    The actual sign-out is handled by the Firebase client SDK.
    This clears the server-side session.
    """
    session.clear()
    return jsonify({"status": "success"})


@bp.route("/csrf_token", methods=["GET"])
def csrf_token():
    """Hand the client a token to send back in the X-CSRFToken header."""
    return jsonify({"csrfToken": generate_csrf()})
