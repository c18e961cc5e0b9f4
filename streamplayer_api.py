#!/usr/bin/env python3
"""
StreamPlayer REST API Server
FastAPI-based REST API for BluOS/Sonos player discovery and control.
Holds one PlayerSession: discover first, then control the selected output.
"""

import logging
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from player_config import settings
from player_discovery import PlayerDiscovery
from player_errors import (
    NoDevicesError,
    PlayerError,
    PlayerParseError,
    PlayerRequestError,
    PlayerValidationError,
    UnsupportedOperationError,
)
from player_session import PlayerSession

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="StreamPlayer API",
    description="REST API for BluOS and Sonos player discovery and control",
    version="1.0.0"
)
app.state.session = None


# ============================================================================
# Pydantic Models for Request/Response
# ============================================================================

class DeviceInfo(BaseModel):
    """Discovered player."""
    id: int
    ip: str
    name: str
    brand: str
    model: str
    family: str
    active: bool = False


class PresetInfo(BaseModel):
    """Preset / radio favorite."""
    id: int
    name: str
    url: str = ""
    image: str = ""


class StatusInfo(BaseModel):
    """Playback status."""
    state: str
    song: str
    artist: str
    album: str
    volume: int


class GroupRequest(BaseModel):
    """Group specification, e.g. "1+2" (master+slave)."""
    spec: str


# ============================================================================
# Session & error handling
# ============================================================================

def get_session(request: Request) -> PlayerSession:
    session = request.app.state.session
    if session is None:
        raise HTTPException(status_code=409, detail="No player selected - run /api/discover first")
    return session


def _error_status(exc: PlayerError) -> int:
    if isinstance(exc, PlayerValidationError):
        return 400
    if isinstance(exc, NoDevicesError):
        return 404
    if isinstance(exc, UnsupportedOperationError):
        return 501
    if isinstance(exc, PlayerParseError):
        return 502
    return 503


@app.exception_handler(PlayerError)
async def player_error_handler(request: Request, exc: PlayerError):
    status_code = _error_status(exc)
    detail = str(exc)
    if isinstance(exc, PlayerRequestError) and exc.status_code:
        detail = f"{detail} (device status {exc.status_code})"
    return JSONResponse(status_code=status_code, content={"detail": detail})


def _device_list(session: PlayerSession) -> List[DeviceInfo]:
    return [
        DeviceInfo(id=i, active=(device == session.device), **device.to_dict())
        for i, device in enumerate(session.devices, 1)
    ]


# ============================================================================
# Discovery Endpoints
# ============================================================================

@app.post("/api/discover", response_model=List[DeviceInfo])
def discover_devices(timeout: Optional[float] = None):
    """
    Discover players on all local networks and start a new session.

    Args:
        timeout: Per-probe timeout in seconds (default from settings)

    Returns:
        List of discovered players, the first one selected
    """
    session = PlayerSession.discover(PlayerDiscovery(timeout=timeout))
    app.state.session = session
    logger.info("New session with %d player(s), active: %s", len(session.devices), session.device.address)
    return _device_list(session)


@app.get("/api/devices", response_model=List[DeviceInfo])
def get_devices(session: PlayerSession = Depends(get_session)):
    """Players from the last discovery."""
    return _device_list(session)


@app.post("/api/devices/{ordinal}/select", response_model=DeviceInfo)
def select_device(ordinal: int, session: PlayerSession = Depends(get_session)):
    """Switch the active output."""
    session.select(ordinal)
    return _device_list(session)[ordinal - 1]


# ============================================================================
# Status & Presets Endpoints
# ============================================================================

@app.get("/api/status", response_model=StatusInfo)
def get_status(session: PlayerSession = Depends(get_session)):
    """Playback status of the active player."""
    return session.status().to_dict()


@app.get("/api/presets", response_model=List[PresetInfo])
def get_presets(refresh: bool = False, session: PlayerSession = Depends(get_session)):
    """
    Presets (BluOS) or radio favorites (Sonos) of the active player.

    Args:
        refresh: Discard cached favorites and browse again
    """
    presets = session.refresh_presets() if refresh else session.presets()
    return [preset.to_dict() for preset in presets]


@app.post("/api/presets/{preset_id}/play")
def play_preset(preset_id: int, session: PlayerSession = Depends(get_session)):
    """Play a preset on the active player."""
    session.play_preset(preset_id)
    return {"status": "success", "device_ip": session.device.address, "preset": preset_id}


# ============================================================================
# Transport & Volume Endpoints
# ============================================================================

TRANSPORT_COMMANDS = {
    "play": "play",
    "pause": "pause",
    "stop": "stop",
    "next": "next",
    "prev": "previous",
    "previous": "previous",
}


@app.post("/api/control/{command}")
def control(command: str, session: PlayerSession = Depends(get_session)):
    """Send a transport command (play, pause, stop, next, prev) to the active player."""
    method = TRANSPORT_COMMANDS.get(command.lower())
    if method is None:
        raise HTTPException(status_code=404, detail=f"Unknown command '{command}'")
    getattr(session.client, method)()
    return {"status": "success", "device_ip": session.device.address, "command": command}


@app.post("/api/volume")
def set_volume(level: int, session: PlayerSession = Depends(get_session)):
    """Set volume (0-100) on the active player."""
    session.client.set_volume(level)
    return {"status": "success", "device_ip": session.device.address, "volume": level}


# ============================================================================
# Grouping Endpoints
# ============================================================================

@app.get("/api/groups/combinations")
def group_combinations(session: PlayerSession = Depends(get_session)):
    """Player pairs that can be grouped (BluOS only)."""
    return {"combinations": [f"{m}+{s}" for m, s in session.group_combinations()]}


@app.post("/api/groups", response_model=DeviceInfo)
def create_group(request: GroupRequest, session: PlayerSession = Depends(get_session)):
    """Group two players; the master becomes the active output."""
    session.group(request.spec)
    return _device_list(session)[session.selected_ordinal - 1]


@app.delete("/api/groups")
def ungroup(session: PlayerSession = Depends(get_session)):
    """Ungroup every known BluOS player (best effort)."""
    calls = session.ungroup()
    return {"status": "success", "successful_calls": calls}


# ============================================================================
# Diagnostics
# ============================================================================

@app.get("/api/diagnose")
def diagnose(session: PlayerSession = Depends(get_session)):
    """Which device endpoints of the active player respond."""
    return {"result": session.diagnose()}


# ============================================================================
# Utility
# ============================================================================

@app.get("/api/health")
def health_check():
    """
    Health check endpoint.
    """
    return {
        "status": "healthy",
        "service": "StreamPlayer API",
        "session": app.state.session is not None,
    }


@app.get("/")
def root():
    """
    API root endpoint with usage info.
    """
    return {
        "name": "StreamPlayer API",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "discovery": {
                "POST /api/discover": "Scan the network and start a session",
                "GET /api/devices": "Players from the last scan",
                "POST /api/devices/{ordinal}/select": "Switch the active output",
            },
            "control": {
                "GET /api/status": "Playback status",
                "GET /api/presets": "Presets / radio favorites (?refresh=true to reload)",
                "POST /api/presets/{preset_id}/play": "Play a preset",
                "POST /api/control/{command}": "play, pause, stop, next, prev",
                "POST /api/volume?level=N": "Set volume 0-100",
            },
            "grouping": {
                "GET /api/groups/combinations": "Possible master+slave pairs",
                "POST /api/groups": "Group two players",
                "DELETE /api/groups": "Ungroup all players",
            },
            "utility": {
                "GET /api/diagnose": "Test device endpoints",
                "GET /api/health": "Health check",
            },
        },
    }


if __name__ == "__main__":
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    print("Starting StreamPlayer API Server...")
    print(f"API Documentation: http://localhost:{settings.API_PORT}/docs")
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
