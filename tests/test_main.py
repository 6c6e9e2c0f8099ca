"""Tests for the subcommand dispatcher and CLI entry points."""

import pytest
import yaml


class TestMainDispatcher:
    def test_no_subcommand_shows_help(self, capsys):
        from reelcompose.main import main

        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code != 0  # should error without subcommand

    def test_compose_subcommand_exists(self):
        """Verify compose subcommand is registered (will fail on missing --config)."""
        from reelcompose.main import main

        with pytest.raises(SystemExit):
            main(["compose"])  # missing required args, but subcommand recognized

    def test_intro_subcommand_exists(self):
        from reelcompose.main import main

        with pytest.raises(SystemExit):
            main(["intro"])

    def test_validate_subcommand_exists(self):
        from reelcompose.main import main

        with pytest.raises(SystemExit):
            main(["validate"])

    def test_invalid_subcommand_errors(self, capsys):
        from reelcompose.main import main

        with pytest.raises(SystemExit) as exc_info:
            main(["nonexistent"])
        assert exc_info.value.code != 0


@pytest.fixture
def project(tmp_path, write_settings, write_records):
    """Settings + records for a testimonial whose only clip is missing."""
    records = write_records({
        "testimonials": [{"id": "t-1", "customer_name": "Jane Doe", "customer_position": "CTO"}],
        "questions": [{"id": "q-1", "text": "Why us?", "order": 1}],
        "responses": [{"id": "r-1", "testimonial_id": "t-1", "question_id": "q-1",
                       "video_url": "responses/missing.webm"}],
    })
    return write_settings({
        "paths": {"root": str(tmp_path)},
        "pipeline": {"work_dir": "${root}/work"},
        "storage": {"root": "${root}/bucket"},
        "records": str(records),
    })


class TestValidate:
    def test_prints_summary(self, project, capsys):
        from reelcompose.main import main

        main(["validate", "--config", str(project)])
        out = capsys.readouterr().out
        assert "Settings valid." in out
        assert "1280x720" in out

    def test_invalid_settings(self, write_settings):
        from reelcompose.main import main

        path = write_settings({"pipeline": {"on_busy": "sometimes"}})
        with pytest.raises(ValueError, match="on_busy"):
            main(["validate", "--config", str(path)])


class TestCompose:
    def test_failure_prints_user_message(self, project, capsys, monkeypatch):
        from reelcompose import ffmpeg
        from reelcompose.main import main

        monkeypatch.setattr(ffmpeg, "run_ffmpeg", lambda *a, **k: None)
        with pytest.raises(SystemExit) as exc_info:
            main(["compose", "--config", str(project), "--testimonial", "t-1"])
        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "Error: No processable responses" in err

    def test_unknown_testimonial(self, project, capsys):
        from reelcompose.main import main

        with pytest.raises(SystemExit) as exc_info:
            main(["compose", "--config", str(project), "--testimonial", "t-404"])
        assert exc_info.value.code == 1
        assert "t-404" in capsys.readouterr().err

    def test_intro_without_question_text(self, project, tmp_path, capsys):
        from reelcompose.main import main

        records = tmp_path / "records.yaml"
        data = yaml.safe_load(records.read_text())
        data["questions"] = []
        records.write_text(yaml.safe_dump(data))

        with pytest.raises(SystemExit) as exc_info:
            main(["intro", "--config", str(project), "--response", "r-1"])
        assert exc_info.value.code == 1
        assert "question text" in capsys.readouterr().err
