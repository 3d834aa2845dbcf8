"""安装编排服务测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from yippee.core.arguments import Arguments
from yippee.core.config import Config
from yippee.core.exceptions import FailedIgnoredPkgError, InstallError, MultiError
from yippee.core.models import InstallInfo, Reason, Source
from yippee.services.operation import OperationService


def _layers(d: Path) -> list[dict[str, InstallInfo]]:
    return [
        {"cmake": InstallInfo(source=Source.SYNC, reason=Reason.MAKE_DEP, version="3.0-1", sync_db_name="extra")},
        {"yippee": InstallInfo(
            source=Source.AUR, reason=Reason.EXPLICIT, version="91.0.0-1",
            srcinfo_path=str(d / ".SRCINFO"), aur_base="yippee",
        )},
    ]


@pytest.fixture()
def pkg_dir(tmp_path, executor) -> Path:
    d = tmp_path / "yippee"
    d.mkdir()
    executor.add_packagelist(d, d / "yippee-91.0.0-1-x86_64.pkg.tar.zst")
    return d


@pytest.fixture()
def make_service(tmp_path, db, executor, cmd_builder, vcs):
    def _make(**cfg_kwargs) -> OperationService:
        cfg = Config(build_dir=str(tmp_path), **cfg_kwargs)
        return OperationService(cfg, db, executor, cmd_builder=cmd_builder, vcs=vcs)
    return _make


def _args(*flags: str) -> Arguments:
    args = Arguments("S")
    args.add_arg(*flags)
    args.add_target("yippee")
    return args


class TestOperationService:
    def test_nothing_to_do(self, executor, make_service) -> None:
        assert make_service().run(_args(), [{}], {}, []) is None
        assert executor.calls == []

    def test_full_flow(self, pkg_dir, executor, vcs, make_service) -> None:
        layers = _layers(pkg_dir)
        installer = make_service().run(_args(), layers, {"yippee": str(pkg_dir)}, [])

        assert installer is not None
        assert executor.lines[0] == "makepkg --nocheck --verifysource --skippgpcheck -f -Cc"
        assert executor.lines[1] == "pacman -S --config /etc/pacman.conf -- extra/cmake"
        # 非系统升级: 由 pacman 逐个确认
        assert "--noconfirm" not in executor.lines_starting("pacman -U")[0]
        assert vcs.updates == [(layers, [])]

    def test_sysupgrade_does_not_require_confirm(self, pkg_dir, executor, make_service) -> None:
        make_service().run(_args("u"), _layers(pkg_dir), {"yippee": str(pkg_dir)}, [])
        assert "--noconfirm" in executor.lines_starting("pacman -U")[0]

    def test_double_confirm(self, make_service) -> None:
        assert make_service(double_confirm=True).manual_confirm_required(_args("u"))

    def test_failed_build_reported_and_skipped_by_vcs(self, pkg_dir, executor, vcs, make_service) -> None:
        executor.fail_when(lambda c: "--noprepare" in c.argv)

        with pytest.raises(MultiError) as exc_info:
            make_service().run(_args(), _layers(pkg_dir), {"yippee": str(pkg_dir)}, [])

        assert exc_info.value.contains(FailedIgnoredPkgError)
        assert vcs.updates[0][1] == ["yippee"]

    def test_download_only_skips_vcs(self, pkg_dir, vcs, make_service) -> None:
        make_service().run(_args("w"), _layers(pkg_dir), {"yippee": str(pkg_dir)}, [])
        assert vcs.updates == []

    def test_remove_make_hook(self, pkg_dir, executor, make_service) -> None:
        make_service(remove_make="yes").run(_args(), _layers(pkg_dir), {"yippee": str(pkg_dir)}, [])
        assert executor.lines[-1] == "pacman -R -s -u --noconfirm --config /etc/pacman.conf -- cmake"

    def test_preinstalled_make_dep_kept(self, pkg_dir, db, executor, make_service) -> None:
        db.reasons["cmake"] = Reason.EXPLICIT
        make_service(remove_make="yes").run(_args(), _layers(pkg_dir), {"yippee": str(pkg_dir)}, [])
        assert executor.lines_starting("pacman -R") == []

    def test_remove_make_ask_does_nothing(self, pkg_dir, executor, make_service) -> None:
        make_service(remove_make="ask").run(_args(), _layers(pkg_dir), {"yippee": str(pkg_dir)}, [])
        assert executor.lines_starting("pacman -R") == []

    def test_clean_after_hook(self, pkg_dir, executor, make_service) -> None:
        make_service(clean_after=True).run(_args(), _layers(pkg_dir), {"yippee": str(pkg_dir)}, [])
        assert executor.lines[-2:] == ["git reset --hard HEAD", "git clean -fx --exclude *.pkg.*"]

    def test_install_error_still_runs_hooks(self, pkg_dir, executor, vcs, make_service) -> None:
        executor.fail_when(lambda c: "-S" in c.argv)

        with pytest.raises(InstallError):
            make_service(clean_after=True).run(_args(), _layers(pkg_dir), {"yippee": str(pkg_dir)}, [])

        assert executor.lines[-1] == "git clean -fx --exclude *.pkg.*"
        assert vcs.updates == []

    def test_download_failure_aborts(self, pkg_dir, executor, make_service) -> None:
        executor.fail_when(lambda c: "--verifysource" in c.argv)

        with pytest.raises(MultiError):
            make_service().run(_args(), _layers(pkg_dir), {"yippee": str(pkg_dir)}, [])

        assert executor.lines_starting("pacman") == []
