"""异常体系与 MultiError 测试"""

from __future__ import annotations

import pytest

from yippee.core.exceptions import (
    BuildError,
    DownloadError,
    FailedIgnoredPkgError,
    InstallError,
    MultiError,
    PkgDestNotFoundError,
    YippeeError,
)


class TestMultiError:
    def test_empty_does_not_raise(self) -> None:
        errs = MultiError()
        errs.add(None)
        assert not errs
        errs.raise_if_any()

    def test_keeps_every_error_in_order(self) -> None:
        errs = MultiError()
        errs.add(ValueError("first"))
        errs.add(DownloadError("/b/x", "boom"))
        errs.add(ValueError("third"))

        assert len(errs) == 3
        assert str(errs).splitlines()[0] == "first"
        assert str(errs).splitlines()[2] == "third"
        with pytest.raises(MultiError) as exc_info:
            errs.raise_if_any()
        assert exc_info.value is errs

    def test_contains_and_of_type(self) -> None:
        errs = MultiError([BuildError("a", "x"), DownloadError("/b", "y")])
        assert errs.contains(DownloadError)
        assert errs.contains(YippeeError)
        assert not errs.contains(InstallError)
        assert len(errs.of_type(BuildError)) == 1

    def test_nested_flattened(self) -> None:
        inner = MultiError([ValueError("a"), ValueError("b")])
        outer = MultiError()
        outer.add(inner)
        outer.add(ValueError("c"))
        assert len(outer) == 3


class TestErrorMessages:
    def test_failed_ignored_lists_each_base(self) -> None:
        err = FailedIgnoredPkgError({"a": BuildError("a", "x"), "b": BuildError("b", "y")})
        lines = str(err).splitlines()
        assert lines[1].startswith("  a - ")
        assert lines[2].startswith("  b - ")

    def test_install_error_context(self) -> None:
        err = InstallError("boom", layer=2, phase="archive")
        assert str(err) == "第 2 层 [archive] boom"
        assert err.code == "INSTALL_ERROR"

    def test_pkgdest_not_found_is_build_error(self) -> None:
        err = PkgDestNotFoundError("yippee", "/b/y.pkg", ["/b/y.pkg"])
        assert isinstance(err, BuildError)
        assert err.base == "yippee"
        assert "/b/y.pkg" in str(err)
