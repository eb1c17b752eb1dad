"""
Tests for the Exercise 0 setup flow
"""
from unittest.mock import MagicMock, patch

import pytest
import requests
import responses
from dotenv import dotenv_values

import setup_workshop
from conftest import API, FakeCluster
from setup_aap_resources import WorkshopProvisioner
from workshop_common import WorkshopError


def test_check_prerequisites_missing_details(tmp_path):
    with pytest.raises(WorkshopError, match="populated by the workshop moderator"):
        setup_workshop.check_prerequisites(tmp_path / "details.txt")


@patch("workshop_common.shutil.which", side_effect=lambda name: None if name == "ansible-playbook" else "/bin/x")
def test_check_prerequisites_missing_ansible(mock_which, details_file):
    with pytest.raises(WorkshopError, match="Ansible not found"):
        setup_workshop.check_prerequisites(details_file)


def test_write_environment(details_file, tmp_path):
    env_file = tmp_path / ".env"

    env = setup_workshop.write_environment(details_file, env_file)

    assert env["WORKSHOP_GUID"] == "abc12"
    assert dotenv_values(env_file)["OCP_API_URL"] == "https://api.cluster-abc12.example.com:6443"


def test_oc_login_with_token():
    cli = FakeCluster()
    cli.add("login", "https://api:6443", "--token=sha256~tok", "--insecure-skip-tls-verify=true")
    cli.add("whoami", output="kube:admin")

    assert setup_workshop.configure_oc_login(cli, {"OCP_API_URL": "https://api:6443",
                                                   "OCP_BEARER_TOKEN": "sha256~tok"}) is True


def test_oc_login_without_token_asks_for_manual_login(capsys):
    cli = FakeCluster()

    assert setup_workshop.configure_oc_login(cli, {"OCP_API_URL": "https://api:6443"}) is False
    assert cli.calls == []
    assert "oc login https://api:6443" in capsys.readouterr().out


def test_oc_login_failure_is_not_fatal():
    assert setup_workshop.configure_oc_login(FakeCluster(), {"OCP_API_URL": "https://api:6443",
                                                             "OCP_BEARER_TOKEN": "bad"}) is False


def test_create_namespace_idempotent(capsys):
    cli = FakeCluster()
    cli.add("get", "namespace", "workshop-aap")

    assert setup_workshop.create_namespace(cli, "workshop-aap") is True
    assert "already exists" in capsys.readouterr().out


@patch("setup_workshop.execution_environment")
def test_execution_environment_registered(mock_ee, client, workshop_env, env_file):
    mock_ee.check_prerequisites.return_value = "podman"
    mock_ee.build_image.return_value = True
    provisioner = WorkshopProvisioner(client, dict(workshop_env), env_file)
    provisioner.setup_execution_environment = MagicMock(return_value=8)

    assert setup_workshop.setup_execution_environment(provisioner, env_file.parent, env_file) is True

    assert dotenv_values(env_file)["EE_IMAGE_NAME"] == "aap-workshop-ee:abc12"
    assert provisioner.env["EE_IMAGE_NAME"] == "aap-workshop-ee:abc12"
    mock_ee.build_image.assert_called_once_with(env_file.parent, "aap-workshop-ee:abc12", "podman")


@patch("setup_workshop.execution_environment")
def test_execution_environment_skipped_without_builder(mock_ee, client, workshop_env, env_file):
    mock_ee.check_prerequisites.side_effect = WorkshopError("ansible-builder not found")
    provisioner = WorkshopProvisioner(client, dict(workshop_env), env_file)

    assert setup_workshop.setup_execution_environment(provisioner, env_file.parent, env_file) is False
    mock_ee.build_image.assert_not_called()


@patch("setup_workshop.execution_environment")
def test_execution_environment_api_failure_is_not_fatal(mock_ee, client, workshop_env, env_file):
    mock_ee.check_prerequisites.return_value = "podman"
    mock_ee.build_image.return_value = True
    provisioner = WorkshopProvisioner(client, dict(workshop_env), env_file)
    provisioner.setup_execution_environment = MagicMock(side_effect=requests.exceptions.HTTPError("500"))

    assert setup_workshop.setup_execution_environment(provisioner, env_file.parent, env_file) is False


@responses.activate
def test_main_skips_aap_when_unreachable(details_file, tmp_path, capsys):
    responses.add(responses.GET, "https://aap.example.com/api/controller/v2/ping/", status=502)
    env_file = tmp_path / ".env"

    with patch("workshop_common.shutil.which", return_value="/usr/bin/tool"), \
            patch("setup_workshop.ClusterCLI", return_value=FakeCluster()):
        code = setup_workshop.main(["--details", str(details_file), "--env-file", str(env_file), "--no-color"])

    assert code == 0
    assert env_file.is_file()
    assert "skipping AAP resource setup" in capsys.readouterr().out
    assert [c.request.url for c in responses.calls] == [f"{API}/ping/"]


def test_main_missing_details(tmp_path):
    assert setup_workshop.main(["--details", str(tmp_path / "details.txt")]) == 1


def run_main(details_file, env_file):
    with patch("workshop_common.shutil.which", return_value="/usr/bin/tool"), \
            patch("setup_workshop.ClusterCLI", return_value=FakeCluster()):
        return setup_workshop.main(["--details", str(details_file), "--env-file", str(env_file),
                                    "--skip-ee", "--no-color"])


@responses.activate
def test_main_fails_when_aap_setup_fails(details_file, tmp_path, capsys):
    responses.add(responses.GET, f"{API}/ping/", json={"version": "4.5"})
    responses.add(responses.GET, f"{API}/organizations/", json={"count": 1, "results": [{"id": 1, "name": "Default"}]})
    responses.add(responses.GET, f"{API}/projects/", json={"count": 0, "results": []})
    responses.add(responses.POST, f"{API}/projects/", json={"scm_url": ["invalid"]}, status=400)

    assert run_main(details_file, tmp_path / ".env") == 1

    captured = capsys.readouterr()
    assert "Failed to set up AAP project" in captured.out
    assert "completed successfully" not in captured.out
    assert "AAP resource setup failed" in captured.err


@responses.activate
def test_main_fails_when_controller_drops_connection(details_file, tmp_path, capsys):
    responses.add(responses.GET, f"{API}/ping/", json={"version": "4.5"})
    responses.add(responses.GET, f"{API}/organizations/",
                  body=requests.exceptions.ConnectionError("connection reset by peer"))

    assert run_main(details_file, tmp_path / ".env") == 1

    captured = capsys.readouterr()
    assert "completed successfully" not in captured.out
    assert "connection reset by peer" in captured.err
