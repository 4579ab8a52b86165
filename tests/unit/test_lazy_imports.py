"""Tests for lazy import system in blossomwatch.__init__."""

from __future__ import annotations

import importlib
import sys

import pytest


class TestLazyImports:
    """Test PEP 562 lazy loading in blossomwatch.__init__."""

    def test_lazy_import_does_not_eagerly_load(self) -> None:
        """Verify that importing blossomwatch does not eagerly load subpackages."""
        saved = {m: sys.modules.pop(m) for m in list(sys.modules) if m.startswith("blossomwatch")}
        try:
            importlib.import_module("blossomwatch")

            assert "blossomwatch.core" not in sys.modules
            assert "blossomwatch.models" not in sys.modules
            assert "blossomwatch.services" not in sys.modules
            assert "blossomwatch.utils" not in sys.modules
        finally:
            for mod in [m for m in sys.modules if m.startswith("blossomwatch")]:
                del sys.modules[mod]
            sys.modules.update(saved)

    def test_lazy_import_resolves_on_access(self) -> None:
        from blossomwatch import Discovery
        from blossomwatch.services.discovery.service import Discovery as DirectDiscovery

        assert Discovery is DirectDiscovery

    def test_lazy_import_caches_after_first_access(self) -> None:
        import blossomwatch

        _ = blossomwatch.ServerRecord
        assert "ServerRecord" in vars(blossomwatch)

    def test_lazy_import_invalid_attribute(self) -> None:
        import blossomwatch

        with pytest.raises(AttributeError, match="no_such_thing"):
            _ = getattr(blossomwatch, "no_such_thing")  # noqa: B009

    def test_all_exports_are_in_lazy_imports(self) -> None:
        import blossomwatch

        assert set(blossomwatch.__all__) == set(blossomwatch._LAZY_IMPORTS)

    def test_version(self) -> None:
        import blossomwatch

        assert isinstance(blossomwatch.__version__, str)
