import os

import pytest
import responses

from rapina.cli import main, open_database, output_filename, update

SECTORS_URL = (
    "http://bvmf.bmfbovespa.com.br/cias-listadas/empresas-listadas/BuscaEmpresaListada.aspx"
)


@pytest.fixture
def mocked():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as rsps:
        yield rsps


@pytest.mark.parametrize(
    "sub, name, expected",
    [
        ("/test", "sample", "/test/sample.xlsx"),
        ("", "File 100", "/File_100.xlsx"),
        ("", "An,odd/file\\name", "/An_odd_file_name.xlsx"),
    ],
)
def test_output_filename(tmp_path, sub, name, expected):
    base = str(tmp_path)
    returned = output_filename(base + sub, name)
    assert returned == (base + expected).replace("/", os.sep)


def test_output_filename_creates_directory(tmp_path):
    target = tmp_path / "reports"
    output_filename(str(target), "sample")
    assert target.is_dir()


def test_output_filename_avoids_existing_file(tmp_path):
    (tmp_path / "sample.xlsx").write_bytes(b"")
    returned = output_filename(str(tmp_path), "sample.")
    assert returned == f"{tmp_path}/sample(1).xlsx"


def test_output_filename_gives_up_after_fifty(tmp_path):
    (tmp_path / "x.xlsx").write_bytes(b"")
    for i in range(1, 51):
        (tmp_path / f"x({i}).xlsx").write_bytes(b"")
    with pytest.raises(FileExistsError):
        output_filename(str(tmp_path), "x")


def test_open_database_creates_file(tmp_path):
    data_dir = tmp_path / "data"
    db = open_database(str(data_dir))
    try:
        db.execute("CREATE TABLE t (x)")
        db.execute("INSERT INTO t VALUES (1)")
        assert db.execute("SELECT x FROM t").fetchone() == (1,)
    finally:
        db.close()
    assert (data_dir / "rapina.db").is_file()


def test_update_sectors_only(mocked, tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    mocked.add(
        responses.GET,
        SECTORS_URL,
        body="<html><body><table></table></body></html>",
        content_type="text/html; charset=utf-8",
    )
    yaml_file = tmp_path / "setores.yml"
    db = open_database(str(tmp_path / ".data"))
    try:
        update(db, str(tmp_path / ".data"), str(yaml_file), True, "")
    finally:
        db.close()
    assert yaml_file.read_text(encoding="utf-8") == "Setores:\n"
    assert "Arquivo salvo" in capsys.readouterr().out
    assert len(mocked.calls) == 1


def test_main_without_command_prints_help(capsys):
    assert main([]) == 0
    out = capsys.readouterr().out
    assert "update" in out


def test_main_update_help_exits_cleanly(capsys):
    with pytest.raises(SystemExit) as info:
        main(["update", "--help"])
    assert info.value.code == 0
    assert "--sectors" in capsys.readouterr().out