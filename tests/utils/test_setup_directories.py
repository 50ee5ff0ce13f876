from pathlib import Path

from hexrollup.setup_directories import get_level_export_path, setup_output_directories


def test_setup_output_directories_creates_all(tmp_path):
    dirs = setup_output_directories(tmp_path)

    expected = {"base", "db", "exports", "plots", "logs"}

    assert set(dirs.keys()) == expected

    for path in dirs.values():
        assert isinstance(path, Path)
        assert path.exists()
        assert path.is_dir()


def test_setup_output_directories_is_idempotent(tmp_path):
    dirs1 = setup_output_directories(tmp_path)
    dirs2 = setup_output_directories(tmp_path)

    assert dirs1 == dirs2


def test_paths_are_absolute(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    dirs = setup_output_directories("relative/out")

    assert dirs["base"].is_absolute()
    assert dirs["base"] == tmp_path.resolve() / "relative" / "out"


def test_default_base_is_cwd_output(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    dirs = setup_output_directories()

    assert dirs["base"] == tmp_path.resolve() / "output"


def test_verbose_prints_directories(tmp_path, capsys):
    setup_output_directories(tmp_path, verbose=True)
    assert "exports" in capsys.readouterr().out


def test_level_export_path(tmp_path):
    dirs = setup_output_directories(tmp_path)

    assert get_level_export_path(dirs, 5, "geojson") == dirs["exports"] / "h3_level_5.geojson"
    assert get_level_export_path(dirs, 7, ".json") == dirs["exports"] / "h3_level_7.json"


def test_derived_export_path(tmp_path):
    dirs = setup_output_directories(tmp_path)

    path = get_level_export_path(dirs, 2, "json", derived=True)
    assert path == dirs["exports"] / "rollup" / "reports_h3_level_2.json"
