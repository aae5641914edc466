"""
Admin Blueprint — downstream job queue inspection.

Endpoints:
  GET  /api/v1/admin/jobs       — registered jobs, pending queue, recent history
  POST /api/v1/admin/jobs/run   — drain the pending queue now (manual mode)
"""

from flask import Blueprint, jsonify

from portal.middleware.role_required import require_roles
from portal.services.job_queue import JobQueue, get_registered_jobs

admin_bp = Blueprint("admin_bp", __name__, url_prefix="/api/v1/admin")


@admin_bp.route("/jobs", methods=["GET"])
@require_roles("admin")
def list_jobs():
    return jsonify({
        "mode": JobQueue.mode(),
        "registered": sorted(get_registered_jobs()),
        "pending": JobQueue.pending(),
        "history": JobQueue.history()[-50:],
    }), 200


@admin_bp.route("/jobs/run", methods=["POST"])
@require_roles("admin")
def run_jobs():
    results = JobQueue.run_pending()
    return jsonify({"executed": len(results), "results": results}), 200
