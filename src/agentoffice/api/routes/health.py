from fastapi import APIRouter, Request

from agentoffice import __version__
from agentoffice.application.settings import describe_mode, is_api_key_required

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    """Liveness probe with the active default mode."""
    services = request.app.state.services
    mode = services.settings.mode
    return {
        "status": "ok",
        "version": __version__,
        "mode": mode.value,
        "modeDescription": describe_mode(mode),
        "apiKeyRequired": is_api_key_required(mode),
        "modelReady": services.model_client.is_ready(),
    }


@router.get("/api/stats")
async def stats(request: Request):
    """Usage, cache and daily limit status."""
    services = request.app.state.services
    settings = services.settings
    limits = services.tracker.check_limits(settings.max_cost_alert, settings.max_tokens_per_day)
    return {
        "session": services.tracker.session_stats().to_dict(),
        "daily": services.tracker.daily_stats().to_dict(),
        "cache": services.cache.stats().to_dict(),
        "limits": {"exceeded": limits.exceeded, "warnings": limits.warnings},
    }
