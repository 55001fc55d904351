"""Tests for the command line interface."""

import json

import pytest
from typer.testing import CliRunner

from extipam.adapter import IpamAdapter
from extipam.cli import config as cli_config
from extipam.cli.commands import ipam as ipam_commands
from extipam.cli.main import app

runner = CliRunner()


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "bluecat.yml"
    path.write_text(
        ":url: https://bam.example.com\n"
        ":user: api\n"
        ":password: secret\n"
        ":default_group: Engineering\n"
        "reservation_sweep_interval_seconds: 0\n"
    )
    return str(path)


@pytest.fixture(autouse=True)
def fake_provider(monkeypatch, transport):
    monkeypatch.setattr(
        ipam_commands,
        "IpamAdapter",
        lambda config: IpamAdapter(config, transport=transport),
    )
    monkeypatch.setattr(cli_config, "CONFIG_PATH", None)
    monkeypatch.setattr(cli_config, "OUTPUT_FORMAT", "table")


def test_groups_table(settings_file):
    result = runner.invoke(app, ["-c", settings_file, "ipam", "groups"])

    assert result.exit_code == 0
    assert "Engineering" in result.output
    assert "Default" in result.output


def test_subnet_json(settings_file):
    result = runner.invoke(app, ["-c", settings_file, "-f", "json", "ipam", "subnet", "10.0.0.0/24"])

    assert result.exit_code == 0
    assert json.loads(result.output)["id"] == "101"


def test_next_ip(settings_file, fake_bam):
    fake_bam.next_ip["101"] = "10.0.0.5"

    result = runner.invoke(
        app, ["-c", settings_file, "ipam", "next-ip", "10.0.0.0/24", "--mac", "aa:bb:cc:dd:ee:ff"]
    )

    assert result.exit_code == 0
    assert result.output.strip() == "10.0.0.5"


def test_error_exit_code(settings_file):
    result = runner.invoke(
        app, ["-c", settings_file, "ipam", "subnet", "10.0.0.0/24", "--group", "Marketing"]
    )

    assert result.exit_code == 1


def test_config_show_masks_password(settings_file):
    result = runner.invoke(app, ["-c", settings_file, "-f", "json", "config", "show"])

    assert result.exit_code == 0
    values = json.loads(result.output)
    assert values["PASSWORD"] == "********"
    assert values["DEFAULT_GROUP"] == "Engineering"


def test_config_check_reports_missing_settings(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text(":url: https://bam.example.com\n")

    result = runner.invoke(app, ["-c", str(path), "config", "check"])

    assert result.exit_code == 1
