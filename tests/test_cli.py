from unittest.mock import patch

from click.testing import CliRunner

from oasgen.cli import main

from helpers import fixture_path


def _invoke(*args):
    return CliRunner().invoke(main, ["generate", *args])


class TestCliGenerate:
    def test_client_and_server(self, tmp_path):
        out = tmp_path / "gen"
        result = _invoke(str(fixture_path("petstore.yaml")), "-o", str(out), "--client", "--server-all")

        assert result.exit_code == 0, result.output
        assert "Loaded" in result.output
        assert "5 operations" in result.output
        assert (out / "client.go").exists()
        assert (out / "server_router.go").exists()
        assert (out / "README.md").exists()

    def test_package_name(self, tmp_path):
        result = _invoke(str(fixture_path("pets.yaml")), "-o", str(tmp_path), "-p", "petsapi", "--no-readme")

        assert result.exit_code == 0, result.output
        assert "package petsapi" in (tmp_path / "types.go").read_text()
        assert not (tmp_path / "README.md").exists()

    def test_config_file_with_override(self, tmp_path):
        config = tmp_path / "oasgen.yaml"
        config.write_text("package_name: fromfile\ngenerate_client: true\n")
        out = tmp_path / "gen"
        result = _invoke(str(fixture_path("pets.yaml")), "-o", str(out), "--config", str(config),
                         "-p", "flag")

        assert result.exit_code == 0, result.output
        assert "package flag" in (out / "client.go").read_text()

    def test_missing_document(self, tmp_path):
        result = _invoke(str(tmp_path / "missing.yaml"), "-o", str(tmp_path / "gen"))

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_invalid_config(self, tmp_path):
        config = tmp_path / "bad.yaml"
        config.write_text("package_name: Not-Valid\n")
        result = _invoke(str(fixture_path("pets.yaml")), "-o", str(tmp_path), "--config", str(config))

        assert result.exit_code == 1
        assert "invalid package name" in result.output

    def test_strict_mode_reports_issues(self, tmp_path):
        out = tmp_path / "gen"
        result = _invoke(str(fixture_path("swagger.yaml")), "-o", str(out), "--client", "--oauth2-flows",
                         "--strict")

        assert result.exit_code == 1
        assert "insecure URL" in result.output
        assert "strict mode" in result.output
        assert not out.exists()

    def test_bad_router_choice(self, tmp_path):
        result = _invoke(str(fixture_path("pets.yaml")), "-o", str(tmp_path), "--server-router", "gorilla")

        assert result.exit_code == 2

    @patch("oasgen.cli.write_files")
    def test_nothing_written_on_load_failure(self, mock_write, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("openapi: 3.0.0\ninfo: {title: x, version: '1'}\n")
        result = _invoke(str(bad), "-o", str(tmp_path / "gen"))

        assert result.exit_code == 1
        assert "no paths" in result.output
        mock_write.assert_not_called()

    @patch("oasgen.render.shutil.which", return_value=None)
    def test_gofmt_can_be_skipped(self, mock_which, tmp_path):
        result = _invoke(str(fixture_path("pets.yaml")), "-o", str(tmp_path), "--no-gofmt")

        assert result.exit_code == 0, result.output
        assert (tmp_path / "types.go").exists()
        mock_which.assert_not_called()
