from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from starlette import status

from ..schemas import (
    FinalizeRequest,
    InputSubmission,
    SessionCreate,
    SessionState,
    Statistics,
)
from ..storage import InMemorySessionStore, SessionStateError, get_store

sessions_router = APIRouter(prefix="/sessions", tags=["sessions"])


@sessions_router.post(
    "",
    summary="Create or get a typing session",
    response_model=dict,
    status_code=status.HTTP_200_OK,
)
# PUBLIC_INTERFACE
def create_session(payload: SessionCreate, store: InMemorySessionStore = Depends(get_store)) -> dict:
    """Create a new session or return an existing one.

    Parameters:
        payload: SessionCreate with optional session_id, target text length and interval.

    Returns:
        JSON object with generated or existing session_id.
    """
    session_id = store.create_session(
        payload.session_id,
        text_length=payload.text_length,
        measurement_interval_seconds=payload.measurement_interval_seconds,
    )
    return {"session_id": session_id}


@sessions_router.get(
    "",
    summary="List all sessions",
    response_model=list[SessionState],
    status_code=status.HTTP_200_OK,
)
# PUBLIC_INTERFACE
def list_sessions(store: InMemorySessionStore = Depends(get_store)) -> list[SessionState]:
    """List states of all existing sessions."""
    return store.list_sessions()


@sessions_router.post(
    "/{session_id}/inputs",
    summary="Record keystrokes for a session",
    response_model=SessionState,
    status_code=status.HTTP_200_OK,
)
# PUBLIC_INTERFACE
def record_inputs(
    session_id: str,
    request: InputSubmission,
    store: InMemorySessionStore = Depends(get_store),
) -> SessionState:
    """Record one or more keystrokes, in order, and update the live statistics.

    Parameters:
        session_id: The session identifier.
        request: InputSubmission containing the keystrokes.

    Returns:
        Updated SessionState.

    Raises:
        HTTPException 404 if session does not exist.
        HTTPException 409 if the session was already finalized.
    """
    try:
        return store.record_inputs(session_id, request.inputs)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="session not found")
    except SessionStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@sessions_router.get(
    "/{session_id}",
    summary="Get live session state",
    response_model=SessionState,
    status_code=status.HTTP_200_OK,
)
# PUBLIC_INTERFACE
def get_session(session_id: str, store: InMemorySessionStore = Depends(get_store)) -> SessionState:
    """Retrieve the counters and measurements of a session.

    Raises:
        HTTPException 404 if session not found.
    """
    try:
        return store.get_session_state(session_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="session not found")


@sessions_router.post(
    "/{session_id}/finalize",
    summary="Finalize a session",
    response_model=Statistics,
    status_code=status.HTTP_200_OK,
)
# PUBLIC_INTERFACE
def finalize_session(
    session_id: str,
    request: FinalizeRequest,
    store: InMemorySessionStore = Depends(get_store),
) -> Statistics:
    """End a session and compute its final statistics.

    Parameters:
        session_id: The session identifier.
        request: FinalizeRequest with total duration and current position.

    Returns:
        Statistics of the session.

    Raises:
        HTTPException 404 if session not found.
        HTTPException 409 if the session was already finalized.
    """
    try:
        return store.finalize_session(session_id, request.duration, request.current_position)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="session not found")
    except SessionStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@sessions_router.get(
    "/{session_id}/statistics",
    summary="Get final session statistics",
    response_model=Statistics,
    status_code=status.HTTP_200_OK,
)
# PUBLIC_INTERFACE
def get_statistics(session_id: str, store: InMemorySessionStore = Depends(get_store)) -> Statistics:
    """Retrieve the statistics of a finalized session.

    Raises:
        HTTPException 404 if session not found.
        HTTPException 409 if the session is still live.
    """
    try:
        return store.get_statistics(session_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="session not found")
    except SessionStateError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


@sessions_router.delete(
    "/{session_id}",
    summary="Delete a session and its data",
    response_model=dict,
    status_code=status.HTTP_200_OK,
)
# PUBLIC_INTERFACE
def delete_session(session_id: str, store: InMemorySessionStore = Depends(get_store)) -> dict:
    """Delete a session.

    Returns:
        {"status":"deleted"} on success.

    Raises:
        HTTPException 404 if session not found.
    """
    try:
        store.clear_session(session_id)
        return {"status": "deleted"}
    except KeyError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="session not found")
