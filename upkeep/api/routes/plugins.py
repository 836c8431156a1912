"""Plugin update and rollback routes.

The engine is synchronous, so handlers are plain ``def`` and run in the
threadpool.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from upkeep.api.schemas import RollbackBody, RollbackPageResponse, UpdateResponse
from upkeep.config import config
from upkeep.exceptions import DescriptorError, ProfileError, RollbackUnavailable
from upkeep.types import RollbackRequest
from upkeep.updater.engine import Updater

logger = logging.getLogger(__name__)
router = APIRouter(tags=["plugins"])


# ── Dependencies ──────────────────────────────────────────────────────────────

def _get_actor(request: Request) -> str:
    actor = getattr(request.state, "actor", None)
    if not actor:
        raise HTTPException(status_code=401, detail="Not authenticated.")
    return actor


def _can_update(request: Request) -> bool:
    return config.update_capability in (getattr(request.state, "capabilities", None) or [])


def _get_updater(slug: str, request: Request) -> Updater:
    factory = request.app.state.updater_factory
    try:
        return factory(slug)
    except ProfileError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except DescriptorError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except FileNotFoundError as exc:
        logger.error("Profiles file missing: %s", exc)
        raise HTTPException(status_code=503, detail="Plugin profiles not configured.")


# ── Routes ────────────────────────────────────────────────────────────────────

@router.get("/plugins/{slug}/update", response_model=UpdateResponse)
def get_update(
    refresh: bool = False,
    actor: str = Depends(_get_actor),
    updater: Updater = Depends(_get_updater),
):
    """Update decision for the plugin. Served from the cache unless ``refresh``."""
    decision = updater.update_check(use_cache=not refresh)
    response = UpdateResponse(
        plugin=decision.plugin,
        version=decision.version,
        available=decision.available,
        check_update_url=updater.check_update_link(actor),
    )
    if decision.available:
        return response.model_copy(update={
            "new_version": decision.new_version,
            "allow_rollback": decision.allow_rollback,
            "package": decision.package,
            "message": updater.update_message(decision),
        })
    return response.model_copy(update={
        "reason": decision.reason.value,
        "allow_rollback": decision.record.allow_rollback if decision.record is not None else False,
    })


@router.get("/plugins/{slug}/info")
def get_info(
    actor: str = Depends(_get_actor),
    updater: Updater = Depends(_get_updater),
):
    """Details view, as shown in the plugin information dialog."""
    return updater.plugin_information().model_dump(mode="json")


@router.get("/plugins/{slug}/rollback", response_model=RollbackPageResponse)
def get_rollback_page(
    request: Request,
    actor: str = Depends(_get_actor),
    updater: Updater = Depends(_get_updater),
):
    """Versions available for rollback plus a nonce for the rollback action."""
    if not _can_update(request):
        raise HTTPException(status_code=403, detail=updater.session.strings["rollback_no_access"])
    try:
        page = updater.rollback_page(actor)
    except RollbackUnavailable as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return RollbackPageResponse(
        plugin=page.plugin,
        slug=page.slug,
        pluginName=page.plugin_name,
        currentVersion=page.current_version,
        versions=[v.model_dump() for v in page.versions],
        changelog=page.changelog,
        lastUpdated=page.last_updated,
        nonce=page.nonce,
    )


@router.post("/plugins/{slug}/rollback")
def post_rollback(
    body: RollbackBody,
    request: Request,
    actor: str = Depends(_get_actor),
    updater: Updater = Depends(_get_updater),
):
    """Roll the plugin back to ``targetVersion``. 400 with ``errorCode`` on failure."""
    result = updater.rollback(RollbackRequest(
        plugin_id=updater.plugin_id,
        target_version=body.targetVersion,
        nonce=body.nonce,
        actor_capability_ok=_can_update(request),
        actor=actor,
    ))
    return JSONResponse(result.to_response(), status_code=200 if result.success else 400)


@router.post("/plugins/{slug}/check-update")
def post_check_update(
    request: Request,
    nonce: str = "",
    actor: str = Depends(_get_actor),
    updater: Updater = Depends(_get_updater),
):
    """Drop the cached decision and send the caller back to the plugin list."""
    if not updater.force_update_check(nonce, actor, _can_update(request)):
        raise HTTPException(status_code=403, detail="Update check not allowed.")
    return RedirectResponse(config.recheck_redirect_url, status_code=303)
