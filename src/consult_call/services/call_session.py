"""Call-session adapter around a real-time communication engine."""

import asyncio
import logging
from typing import Any, Optional

from pyee.asyncio import AsyncIOEventEmitter

from ..models.state import (
    CallKind,
    CallState,
    MediaKind,
    RemoteParticipant,
    SessionDescriptor,
    Uid,
)
from .errors import CallCancelled, CallErrorKind, CallSessionError, classify_error
from .rtc_base import LocalTrack, RemoteTrack, RtcClient, RtcEngine
from .surfaces import LOCAL_SURFACE_ID, REMOTE_SURFACE_ID, SurfaceRegistry, remote_child_id

logger = logging.getLogger(__name__)

DEFAULT_INIT_TIMEOUT = 30.0
DEFAULT_SURFACE_WAIT_TIMEOUT = 5.0


class CallSession(AsyncIOEventEmitter):
    """Binds one engine client to one channel for the lifetime of a call.

    The session publishes local media, subscribes to whatever remote
    participants publish and exposes a small set of operations to the UI.
    A session is single use: once it has been started, a new session and a
    fresh descriptor are required to call again.

    Events:
        state_changed(state, previous): lifecycle transition
        connected(): join and publish both succeeded
        call_error(error): setup or transport failure, a CallSessionError
        remote_participants_changed(participants): remote list changed
        mute_changed(muted) / video_changed(video_off): local toggles
        ended(): session torn down
    """

    def __init__(
        self,
        engine: RtcEngine,
        surfaces: Optional[SurfaceRegistry] = None,
        init_timeout: float = DEFAULT_INIT_TIMEOUT,
        surface_wait_timeout: float = DEFAULT_SURFACE_WAIT_TIMEOUT,
    ):
        super().__init__()
        self._engine = engine
        self.surfaces = surfaces or SurfaceRegistry()
        self.init_timeout = init_timeout
        self.surface_wait_timeout = surface_wait_timeout

        self._state = CallState.IDLE
        self._descriptor: Optional[SessionDescriptor] = None
        self._client: Optional[RtcClient] = None
        self._audio_track: Optional[LocalTrack] = None
        self._video_track: Optional[LocalTrack] = None
        self._remote: dict[Uid, RemoteParticipant] = {}
        self._muted = False
        self._video_off = False
        self.local_uid: Optional[Uid] = None
        self.error: Optional[CallSessionError] = None

        self._cancelled = asyncio.Event()
        self._closing = False
        self._setup_task: Optional[asyncio.Task] = None
        self._event_queue: Optional[asyncio.Queue] = None
        self._event_task: Optional[asyncio.Task] = None
        self._background: set[asyncio.Task] = set()

    @property
    def state(self) -> CallState:
        return self._state

    @property
    def descriptor(self) -> Optional[SessionDescriptor]:
        return self._descriptor

    @property
    def muted(self) -> bool:
        return self._muted

    @property
    def video_off(self) -> bool:
        return self._video_off

    @property
    def local_audio_track(self) -> Optional[LocalTrack]:
        return self._audio_track

    @property
    def local_video_track(self) -> Optional[LocalTrack]:
        return self._video_track

    @property
    def remote_participants(self) -> tuple[RemoteParticipant, ...]:
        """Snapshot of participants that currently publish at least one track."""
        return tuple(self._remote.values())

    async def __aenter__(self) -> "CallSession":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.end()

    async def start(self, descriptor: SessionDescriptor) -> None:
        """Join the descriptor's channel and publish local media.

        Returns once join and publish have both succeeded.

        Raises:
            CallSessionError: Classified setup failure (configuration,
                permission, token, network, timeout or unknown)
            CallCancelled: If end() was called before setup finished
        """
        if self._state is not CallState.IDLE:
            raise CallSessionError(
                CallErrorKind.CONFIGURATION,
                f"session already {self._state.value}; start a new session with a fresh descriptor",
            )

        missing = descriptor.missing_fields
        if missing:
            logger.warning(f"Missing required call configuration: {', '.join(missing)}")
            error = CallSessionError(
                CallErrorKind.CONFIGURATION,
                f"missing required fields: {', '.join(missing)}",
            )
            self._report_error(error)
            raise error

        self._descriptor = descriptor
        self._set_state(CallState.INITIALIZING)
        logger.info(f"Starting {descriptor.call_kind.value} call on channel {descriptor.channel}")

        self._setup_task = asyncio.create_task(self._setup(descriptor))
        try:
            await asyncio.wait_for(self._setup_task, timeout=self.init_timeout)
        except CallCancelled:
            raise
        except asyncio.TimeoutError:
            logger.error(f"Call initialization timed out after {self.init_timeout} seconds")
            error = CallSessionError(
                CallErrorKind.TIMEOUT,
                f"join and publish did not complete within {self.init_timeout} seconds",
            )
            await self._fail(error)
            raise error from None
        except asyncio.CancelledError:
            if self._cancelled.is_set():
                logger.info("Call setup cancelled by end()")
                raise CallCancelled("call ended before setup completed") from None
            logger.info("Call setup cancelled by the caller")
            self._cancelled.set()
            await self._release()
            self._set_state(CallState.ENDED)
            self.emit("ended")
            raise
        except Exception as e:
            error = classify_error(e)
            logger.error(f"Call initialization failed ({error.kind.value}): {e}")
            await self._fail(error)
            raise error from e
        finally:
            self._setup_task = None

        if self._cancelled.is_set():
            raise CallCancelled("call ended before setup completed")

        self._set_state(CallState.CONNECTED)
        logger.info(f"Call active on channel {descriptor.channel} as {self.local_uid}")
        self.emit("connected")

    async def toggle_mute(self) -> bool:
        """Flip the local audio track on or off and return the muted flag."""
        track = self._audio_track
        if track is None or self._state is not CallState.CONNECTED:
            return self._muted

        await track.set_enabled(self._muted)
        self._muted = not self._muted
        logger.info(f"Microphone {'muted' if self._muted else 'unmuted'}")
        self.emit("mute_changed", self._muted)
        return self._muted

    async def toggle_video(self) -> bool:
        """Flip the local camera track on or off and return the video-off flag.

        Voice calls have no camera track, so this is a no-op for them.
        """
        track = self._video_track
        if track is None or self._state is not CallState.CONNECTED:
            return self._video_off

        await track.set_enabled(self._video_off)
        self._video_off = not self._video_off
        logger.info(f"Camera {'off' if self._video_off else 'on'}")
        self.emit("video_changed", self._video_off)
        return self._video_off

    async def end(self) -> None:
        """Tear the session down. Safe to call at any time, any number of times."""
        self._cancelled.set()

        setup = self._setup_task
        if setup is not None and not setup.done():
            logger.info("Ending call while setup is in flight")
            setup.cancel()
            await asyncio.wait([setup])

        already_ended = self._state is CallState.ENDED
        await self._release()
        if not already_ended:
            self._set_state(CallState.ENDED)
            self.emit("ended")

    async def _setup(self, descriptor: SessionDescriptor) -> None:
        client = self._engine.create_client()
        self._client = client
        client.on("user-published", self._on_user_published)
        client.on("user-unpublished", self._on_user_unpublished)
        client.on("connection-state-change", self._on_connection_state_change)
        self._start_event_worker()

        self.local_uid = await client.join(
            descriptor.app_id, descriptor.channel, descriptor.token, descriptor.uid
        )
        self._checkpoint()
        logger.info(f"Joined channel {descriptor.channel}")

        if descriptor.call_kind is CallKind.VIDEO:
            audio, video = await self._engine.create_microphone_and_camera_tracks()
            self._audio_track, self._video_track = audio, video
            self._checkpoint()
            logger.debug("Microphone and camera tracks created")

            self._spawn(self._attach_local_video(video))
            await client.publish([audio, video])
        else:
            audio = await self._engine.create_microphone_track()
            self._audio_track = audio
            self._checkpoint()
            logger.debug("Microphone track created")

            await client.publish([audio])

        self._checkpoint()
        logger.debug("Local tracks published")

    def _checkpoint(self) -> None:
        if self._cancelled.is_set():
            raise CallCancelled("call ended before setup completed")

    async def _attach_local_video(self, track: LocalTrack) -> None:
        surface = await self.surfaces.wait_for(LOCAL_SURFACE_ID, self.surface_wait_timeout)
        if surface is None or self._closing or track is not self._video_track:
            return
        track.play(surface)
        logger.debug("Local video attached")

    def _on_user_published(self, uid: Uid, kind: MediaKind) -> None:
        self._enqueue(("published", uid, kind))

    def _on_user_unpublished(self, uid: Uid, kind: MediaKind) -> None:
        self._enqueue(("unpublished", uid, kind))

    def _on_connection_state_change(self, current: str, previous: str, *args: Any) -> None:
        logger.debug(f"Transport connection state: {previous} -> {current}")
        if self._closing or current != "DISCONNECTED":
            return
        if self._state is CallState.CONNECTED:
            self._spawn(self._handle_transport_drop())

    async def _handle_transport_drop(self) -> None:
        logger.error("Transport disconnected during an active call")
        await self._fail(CallSessionError(CallErrorKind.NETWORK, "transport disconnected"))

    def _enqueue(self, event: tuple) -> None:
        if self._event_queue is not None:
            self._event_queue.put_nowait(event)

    def _start_event_worker(self) -> None:
        self._event_queue = asyncio.Queue()
        self._event_task = asyncio.create_task(self._process_transport_events(self._event_queue))

    async def _stop_event_worker(self) -> None:
        task = self._event_task
        self._event_task = None
        self._event_queue = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.wait([task])

    async def _process_transport_events(self, queue: asyncio.Queue) -> None:
        """Apply remote publish/unpublish events one at a time, in arrival order."""
        while True:
            action, uid, kind = await queue.get()
            try:
                if action == "published":
                    await self._handle_published(uid, kind)
                else:
                    self._handle_unpublished(uid, kind)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Failed to handle remote {action} event for {uid} ({kind.value}): {e}")
            finally:
                queue.task_done()

    async def _handle_published(self, uid: Uid, kind: MediaKind) -> None:
        client = self._client
        if client is None:
            return
        track = await client.subscribe(uid, kind)

        participant = self._remote.get(uid) or RemoteParticipant(uid=uid)
        if kind is MediaKind.VIDEO:
            participant.video_track = track
            self._spawn(self._attach_remote_video(uid, track))
        else:
            participant.audio_track = track
            track.play()
        self._remote[uid] = participant
        logger.info(f"Remote participant {uid} published {kind.value}")
        self._emit_remote_changed()

    def _handle_unpublished(self, uid: Uid, kind: MediaKind) -> None:
        participant = self._remote.get(uid)
        if participant is None:
            return

        if kind is MediaKind.VIDEO:
            track, participant.video_track = participant.video_track, None
            surface = self.surfaces.get(REMOTE_SURFACE_ID)
            if surface is not None:
                surface.remove_child(remote_child_id(uid))
        else:
            track, participant.audio_track = participant.audio_track, None
        if track is not None:
            track.stop()

        if not participant.has_tracks:
            del self._remote[uid]
            logger.info(f"Remote participant {uid} left")
        self._emit_remote_changed()

    async def _attach_remote_video(self, uid: Uid, track: RemoteTrack) -> None:
        surface = await self.surfaces.wait_for(REMOTE_SURFACE_ID, self.surface_wait_timeout)
        participant = self._remote.get(uid)
        if surface is None or participant is None or participant.video_track is not track:
            return
        child = surface.create_child(remote_child_id(uid))
        track.play(child)
        logger.debug(f"Remote video for {uid} attached")

    def _emit_remote_changed(self) -> None:
        self.emit("remote_participants_changed", self.remote_participants)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _set_state(self, state: CallState) -> None:
        previous = self._state
        if state is previous:
            return
        self._state = state
        logger.debug(f"Call state {previous.value} -> {state.value}")
        self.emit("state_changed", state, previous)

    def _report_error(self, error: CallSessionError) -> None:
        self.error = error
        self._set_state(CallState.ERROR)
        self.emit("call_error", error)

    async def _fail(self, error: CallSessionError) -> None:
        self._report_error(error)
        await self._release()

    async def _release(self) -> None:
        """Best-effort teardown; failures are logged and never stop the teardown."""
        self._closing = True

        current = asyncio.current_task()
        for task in list(self._background):
            if task is not current:
                task.cancel()
        await self._stop_event_worker()

        for track in (self._audio_track, self._video_track):
            if track is None:
                continue
            try:
                track.stop()
                track.close()
            except Exception as e:
                logger.warning(f"Failed to release local {track.kind.value} track: {e}")
        self._audio_track = None
        self._video_track = None

        client = self._client
        self._client = None
        if client is not None:
            client.remove_all_listeners()
            try:
                await client.leave()
                logger.info("Left channel")
            except Exception as e:
                logger.warning(f"Failed to leave channel: {e}")

        had_remote = bool(self._remote)
        for participant in self._remote.values():
            for track in (participant.audio_track, participant.video_track):
                if track is None:
                    continue
                try:
                    track.stop()
                except Exception as e:
                    logger.warning(f"Failed to stop remote track of {participant.uid}: {e}")
        self._remote.clear()

        surface = self.surfaces.get(REMOTE_SURFACE_ID)
        if surface is not None:
            surface.clear()
        if had_remote:
            self._emit_remote_changed()
