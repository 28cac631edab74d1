"""Tests for display surfaces and the surface registry."""

import asyncio

import pytest

from consult_call.services.surfaces import (
    LOCAL_SURFACE_ID,
    REMOTE_SURFACE_ID,
    DisplaySurface,
    SurfaceRegistry,
    remote_child_id,
)


class TestDisplaySurface:
    def test_children(self):
        surface = DisplaySurface(REMOTE_SURFACE_ID)
        child = surface.create_child(remote_child_id(12))
        child.attach("track")

        assert child.id == "remote-12"
        assert surface.children == {"remote-12": child}

        removed = surface.remove_child("remote-12")

        assert removed is child
        assert child.track is None
        assert surface.children == {}
        assert surface.remove_child("remote-12") is None

    def test_clear(self):
        surface = DisplaySurface(REMOTE_SURFACE_ID)
        surface.attach("own")
        child = surface.create_child("remote-1")
        child.attach("track")

        surface.clear()

        assert surface.track is None
        assert child.track is None
        assert surface.children == {}


class TestSurfaceRegistry:
    def test_mount_is_idempotent(self):
        registry = SurfaceRegistry()

        first = registry.mount(LOCAL_SURFACE_ID)

        assert registry.mount(LOCAL_SURFACE_ID) is first
        assert registry.get(LOCAL_SURFACE_ID) is first

    def test_unmount_clears(self):
        registry = SurfaceRegistry()
        surface = registry.mount(LOCAL_SURFACE_ID)
        surface.attach("track")

        registry.unmount(LOCAL_SURFACE_ID)
        registry.unmount(LOCAL_SURFACE_ID)

        assert registry.get(LOCAL_SURFACE_ID) is None
        assert surface.track is None

    @pytest.mark.asyncio
    async def test_wait_returns_mounted_surface_immediately(self):
        registry = SurfaceRegistry()
        surface = registry.mount(LOCAL_SURFACE_ID)

        assert await registry.wait_for(LOCAL_SURFACE_ID, timeout=0.01) is surface

    @pytest.mark.asyncio
    async def test_wait_resolves_on_mount(self):
        registry = SurfaceRegistry()
        waiter = asyncio.create_task(registry.wait_for(REMOTE_SURFACE_ID, timeout=1.0))
        await asyncio.sleep(0)

        surface = registry.mount(REMOTE_SURFACE_ID)

        assert await waiter is surface

    @pytest.mark.asyncio
    async def test_wait_times_out(self):
        registry = SurfaceRegistry()

        assert await registry.wait_for(REMOTE_SURFACE_ID, timeout=0.01) is None
        assert registry._waiters.get(REMOTE_SURFACE_ID) in (None, [])
