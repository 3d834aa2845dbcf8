"""安装计划加载测试"""

from __future__ import annotations

import pytest
import yaml

from yippee.core.exceptions import ValidationError
from yippee.core.models import Reason, Source
from yippee.core.plan import load_plan, parse_plan


def _write(tmp_path, data) -> str:
    path = tmp_path / "plan.yml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


class TestLoadPlan:
    def test_layers_and_defaults(self, tmp_path) -> None:
        path = _write(tmp_path, {
            "targets": ["yippee"],
            "build_dirs": {"yippee": "/build/yippee", "unused": "/build/unused"},
            "layers": [
                {"linux": {"source": "sync", "reason": "dep", "version": "6.8.1-1", "sync_db_name": "core"}},
                {"yippee": {"source": "aur", "version": "12.0.4-1"}},
            ],
        })

        plan = load_plan(path)

        assert plan.targets == ["yippee"]
        assert len(plan.layers) == 2
        linux = plan.layers[0]["linux"]
        assert linux.source is Source.SYNC
        assert linux.reason is Reason.DEP
        yippee = plan.layers[1]["yippee"]
        assert yippee.aur_base == "yippee"
        assert yippee.srcinfo_path == "/build/yippee/.SRCINFO"
        assert yippee.reason is Reason.EXPLICIT
        assert plan.source_build_dirs() == {"yippee": "/build/yippee"}

    def test_split_packages_share_base(self, tmp_path) -> None:
        plan = load_plan(_write(tmp_path, {
            "build_dirs": {"jellyfin": "/build/jellyfin"},
            "layers": [{
                "jellyfin-web": {"aur_base": "jellyfin", "reason": "makedep"},
                "jellyfin-server": {"aur_base": "jellyfin"},
            }],
        }))
        layer = plan.layers[0]
        assert {i.aur_base for i in layer.values()} == {"jellyfin"}
        assert layer["jellyfin-web"].reason is Reason.MAKE_DEP

    def test_missing_build_dir(self, tmp_path) -> None:
        with pytest.raises(ValidationError) as exc_info:
            load_plan(_write(tmp_path, {"layers": [{"yippee": {"source": "aur"}}]}))
        assert any("yippee" in d for d in exc_info.value.details)

    def test_unknown_source(self) -> None:
        with pytest.raises(ValidationError, match="foo"):
            parse_plan({"layers": [{"foo": {"source": "ppa"}}]})

    def test_layers_must_be_list(self) -> None:
        with pytest.raises(ValidationError, match="layers"):
            parse_plan({"layers": {"foo": {}}})

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ValidationError, match="不存在"):
            load_plan(tmp_path / "nope.yml")

    def test_empty_plan(self, tmp_path) -> None:
        path = tmp_path / "plan.yml"
        path.write_text("", encoding="utf-8")
        plan = load_plan(path)
        assert plan.layers == []

    def test_malformed_yaml(self, tmp_path) -> None:
        path = tmp_path / "plan.yml"
        path.write_text("layers:\n  - foo: [unclosed\n", encoding="utf-8")
        with pytest.raises(ValidationError, match="YAML") as exc_info:
            load_plan(path)
        assert isinstance(exc_info.value.__cause__, yaml.YAMLError)

    def test_oversized_file(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setattr("yippee.utils.yaml_io.MAX_YAML_SIZE", 8)
        with pytest.raises(ValidationError, match="过大"):
            load_plan(_write(tmp_path, {"layers": []}))

    def test_descriptor_must_be_mapping(self) -> None:
        with pytest.raises(ValidationError, match="foo"):
            parse_plan({"layers": [{"foo": "aur"}]})

    def test_build_dirs_must_be_mapping(self) -> None:
        with pytest.raises(ValidationError, match="build_dirs"):
            parse_plan({"build_dirs": ["/build/foo"], "layers": []})
