"""Display surfaces that rendered video is attached to."""

import asyncio
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

LOCAL_SURFACE_ID = "local-video"
REMOTE_SURFACE_ID = "remote-video"


def remote_child_id(uid: Any) -> str:
    """Identifier of the per-participant container inside the remote surface."""
    return f"remote-{uid}"


class DisplaySurface:
    """A mounted area that can render one track and hold child surfaces."""

    def __init__(self, surface_id: str):
        self.id = surface_id
        self.track: Optional[Any] = None
        self.children: dict[str, "DisplaySurface"] = {}

    def attach(self, track: Any) -> None:
        self.track = track

    def detach(self) -> None:
        self.track = None

    def create_child(self, child_id: str) -> "DisplaySurface":
        child = DisplaySurface(child_id)
        self.children[child_id] = child
        return child

    def remove_child(self, child_id: str) -> Optional["DisplaySurface"]:
        child = self.children.pop(child_id, None)
        if child is not None:
            child.detach()
        return child

    def clear(self) -> None:
        """Detach this surface and drop every child."""
        for child in self.children.values():
            child.detach()
        self.children.clear()
        self.detach()


class SurfaceRegistry:
    """Tracks which display surfaces are mounted.

    Callers that need a surface before it exists wait on a future that the
    surface's own mount resolves, so no polling is involved.
    """

    def __init__(self):
        self._surfaces: dict[str, DisplaySurface] = {}
        self._waiters: dict[str, list[asyncio.Future]] = {}

    def get(self, surface_id: str) -> Optional[DisplaySurface]:
        return self._surfaces.get(surface_id)

    def mount(self, surface_id: str) -> DisplaySurface:
        """Mount a surface (or return the mounted one) and wake its waiters."""
        surface = self._surfaces.get(surface_id)
        if surface is None:
            surface = DisplaySurface(surface_id)
            self._surfaces[surface_id] = surface
            logger.debug(f"Surface mounted: {surface_id}")

        for waiter in self._waiters.pop(surface_id, []):
            if not waiter.done():
                waiter.set_result(surface)
        return surface

    def unmount(self, surface_id: str) -> None:
        surface = self._surfaces.pop(surface_id, None)
        if surface is not None:
            surface.clear()
            logger.debug(f"Surface unmounted: {surface_id}")

    async def wait_for(self, surface_id: str, timeout: float) -> Optional[DisplaySurface]:
        """Return the surface once mounted, or None if it is not mounted in time."""
        surface = self._surfaces.get(surface_id)
        if surface is not None:
            return surface

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(surface_id, []).append(waiter)
        try:
            return await asyncio.wait_for(waiter, timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Surface {surface_id} was not mounted within {timeout}s")
            return None
        finally:
            waiters = self._waiters.get(surface_id)
            if waiters and waiter in waiters:
                waiters.remove(waiter)
