#!/usr/bin/env python3
"""
Example: a student and an expert call each other over the loopback engine.

This example shows how to:
1. Issue channel tokens for a consultation session
2. Start a call session for each participant
3. Watch remote participants arrive
4. Toggle mute and camera
5. End both sessions

Set TOKEN_ENDPOINT_URL to fetch descriptors from a running token endpoint
instead of issuing them in-process.
"""

import argparse
import asyncio
import logging

from consult_call.deps import get_token_client
from consult_call.models.state import CallKind, SessionDescriptor
from consult_call.services import (
    LOCAL_SURFACE_ID,
    REMOTE_SURFACE_ID,
    CallSession,
    CallSessionError,
    ChannelTokenIssuer,
    LoopbackEngine,
    SurfaceRegistry,
)
from consult_call.settings import get_settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_APP_ID = "demo-app-id"
DEMO_CERTIFICATE = "demo-app-certificate"


async def make_descriptor(issuer: ChannelTokenIssuer, session_id: str, uid: int, kind: CallKind) -> SessionDescriptor:
    """Issue a token locally, or fetch one when a token endpoint is configured."""
    settings = get_settings()
    if settings.token_endpoint_url:
        return await get_token_client(settings).fetch_descriptor(session_id, kind, uid)

    issued = issuer.issue(session_id, uid)
    return SessionDescriptor(
        app_id=issued.app_id,
        channel=issued.channel,
        token=issued.token,
        uid=uid,
        call_kind=kind,
    )


async def run_demo(kind: CallKind, session_id: str) -> None:
    print(f"=== Consultation {kind.value} call demo ===\n")

    issuer = ChannelTokenIssuer(DEMO_APP_ID, DEMO_CERTIFICATE)
    if get_settings().token_endpoint_url:
        # Tokens come from elsewhere and cannot be checked locally
        engine = LoopbackEngine(latency=0.05)
    else:
        engine = LoopbackEngine(app_id=DEMO_APP_ID, token_issuer=issuer, latency=0.05)

    student_surfaces = SurfaceRegistry()
    student = CallSession(engine, surfaces=student_surfaces)
    expert = CallSession(engine)

    student.on("state_changed", lambda state, previous: print(f"student: {previous.value} -> {state.value}"))
    student.on(
        "remote_participants_changed",
        lambda participants: print(f"student sees: {[p.uid for p in participants]}"),
    )
    student.on("call_error", lambda error: print(f"student error: {error.user_message}"))

    try:
        student_descriptor = await make_descriptor(issuer, session_id, 1, kind)
        expert_descriptor = await make_descriptor(issuer, session_id, 2, kind)

        await asyncio.gather(student.start(student_descriptor), expert.start(expert_descriptor))

        # The UI mounts its video containers after the call has started
        student_surfaces.mount(LOCAL_SURFACE_ID)
        student_surfaces.mount(REMOTE_SURFACE_ID)
        await asyncio.sleep(0.2)

        print(f"student muted: {await student.toggle_mute()}")
        print(f"student video off: {await student.toggle_video()}")
        print(f"student muted: {await student.toggle_mute()}")

        await expert.end()
        await asyncio.sleep(0.1)
    except CallSessionError as e:
        print(f"Call failed ({e.kind.value}): {e.user_message}")
    finally:
        await student.end()
        await expert.end()

    print("\nDemo completed")


def main() -> None:
    parser = argparse.ArgumentParser(description="Loopback consultation call demo")
    parser.add_argument("--kind", choices=[k.value for k in CallKind], default=CallKind.VIDEO.value)
    parser.add_argument("--session", default="demo-session")
    args = parser.parse_args()

    asyncio.run(run_demo(CallKind(args.kind), args.session))


if __name__ == "__main__":
    main()
