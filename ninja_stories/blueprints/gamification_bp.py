"""
Gamification blueprint: /achievements/check (polled by the client), /belts, /levels,
/profile/progression, /profile/<user_id>/progression, /quizzes/<quiz_id>/complete.
"""
from flask import Blueprint, current_app, jsonify

from ..auth_stub import get_current_user_id, can_view_progression, login_required
from ..exceptions import ProgressionStoreError
from ..repositories.user_progress_repository import UserProgressRepository
from ..services.gamification_service import GamificationService

gamification_bp = Blueprint("gamification", __name__, url_prefix="")


def _service() -> GamificationService:
    repo = UserProgressRepository(current_app.config["DATABASE_PATH"])
    return GamificationService(
        user_progress_repo=repo,
        quiz_completion_gold=current_app.config["QUIZ_COMPLETION_GOLD"],
    )


def _user_not_found():
    return jsonify({"success": False, "error": "User not found"}), 404


@gamification_bp.errorhandler(ProgressionStoreError)
def progression_store_unavailable(error):
    """Store outage: no celebration this cycle, the client retries on its next poll."""
    current_app.logger.warning("Progression store unavailable for user %s: %s", error.user_id, error)
    return jsonify({
        "success": False,
        "error": "Progress is temporarily unavailable",
        "celebrations": [],
        "retry": True,
    }), 503


# --- Polling: belt / level advancement ---
@gamification_bp.route("/achievements/check")
@login_required
def check_achievements():
    """Celebrations for tiers reached since the last check (each shown once)."""
    outcome = _service().poll(get_current_user_id())
    if outcome is None:
        return _user_not_found()
    return jsonify({
        "success": True,
        **outcome,
        "poll_interval": current_app.config["ACHIEVEMENT_POLL_SECONDS"],
    })


# --- Catalogs ---
@gamification_bp.route("/belts")
@login_required
def belts():
    """Writing belts with the current user's progress."""
    progress = _service().belt_progress(get_current_user_id())
    if progress is None:
        return _user_not_found()
    return jsonify({"success": True, **progress})


@gamification_bp.route("/levels")
@login_required
def levels():
    """Character levels with the current user's progress."""
    progress = _service().level_progress(get_current_user_id())
    if progress is None:
        return _user_not_found()
    return jsonify({"success": True, **progress})


# --- Progression snapshots ---
@gamification_bp.route("/profile/progression")
@login_required
def my_progression():
    return user_progression(get_current_user_id())


@gamification_bp.route("/profile/<int:user_id>/progression")
@login_required
def user_progression(user_id):
    """Counters and stored tiers. Teachers and admins may view any user."""
    if not can_view_progression(user_id):
        return jsonify({"success": False, "error": "You do not have permission to view this user"}), 403
    progression = _service().get_progression(user_id)
    if progression is None:
        return _user_not_found()
    return jsonify({"success": True, "progression": progression.to_dict()})


# --- Trigger: first quiz completion ---
@gamification_bp.route("/quizzes/<int:quiz_id>/complete", methods=["POST"])
@login_required
def complete_quiz(quiz_id):
    """Award ninja gold for the first completion of a published quiz and report any level-up."""
    outcome = _service().record_quiz_completion(get_current_user_id(), quiz_id)
    if outcome is None:
        return jsonify({"success": False, "error": "Quiz or user not found"}), 404
    return jsonify({"success": True, **outcome})
