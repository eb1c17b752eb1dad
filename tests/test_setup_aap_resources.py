"""
Tests for the workshop AAP resource provisioner
"""
import itertools
import json
import re
from unittest.mock import patch

import pytest
import requests
import responses
from dotenv import dotenv_values

import setup_aap_resources
from conftest import API
from setup_aap_resources import (
    JOB_TEMPLATES,
    OPENSHIFT_CREDENTIAL_TYPE,
    WorkshopProvisioner,
    check_aap_prerequisites,
)
from workshop_common import WorkshopError

EMPTY = {"count": 0, "results": []}


def found(obj_id, name="existing"):
    return {"count": 1, "results": [{"id": obj_id, "name": name}]}


def add_lookups():
    responses.add(responses.GET, f"{API}/organizations/", json=found(1, "Default"))
    responses.add(responses.GET, f"{API}/credential_types/", json=found(17, OPENSHIFT_CREDENTIAL_TYPE))


def add_job_template_api(fail_names=()):
    ids = itertools.count(100)

    def create(request):
        payload = json.loads(request.body)
        if any(payload["name"].startswith(name) for name in fail_names):
            return 400, {}, json.dumps({"playbook": ["not found"]})
        return 201, {}, json.dumps({"id": next(ids), "name": payload["name"]})

    responses.add(responses.GET, f"{API}/job_templates/", json=EMPTY)
    responses.add_callback(responses.POST, f"{API}/job_templates/", callback=create,
                           content_type="application/json")
    responses.add(responses.POST, re.compile(rf"{API}/job_templates/\d+/credentials/"), status=204)


@pytest.fixture
def provisioner(client, workshop_env, env_file):
    return WorkshopProvisioner(client, dict(workshop_env), env_file)


def requests_to(path, method="POST"):
    return [c for c in responses.calls if c.request.method == method and c.request.url.split("?")[0] == f"{API}/{path}"]


@responses.activate
def test_setup_all_creates_everything_and_records_ids(provisioner, env_file):
    add_lookups()
    responses.add(responses.GET, f"{API}/projects/", json=EMPTY)
    responses.add(responses.POST, f"{API}/projects/", json={"id": 11}, status=201)
    responses.add(responses.GET, f"{API}/inventories/", json=EMPTY)
    responses.add(responses.POST, f"{API}/inventories/", json={"id": 12}, status=201)
    responses.add(responses.GET, f"{API}/credentials/", json=EMPTY)
    responses.add(responses.POST, f"{API}/credentials/", json={"id": 13}, status=201)
    add_job_template_api()

    assert provisioner.setup_all() is True

    recorded = dotenv_values(env_file)
    assert recorded["AAP_PROJECT_ID"] == "11"
    assert recorded["AAP_INVENTORY_ID"] == "12"
    assert recorded["AAP_CREDENTIAL_ID"] == "13"

    project = json.loads(requests_to("projects/")[0].request.body)
    assert project["name"] == "AAP-Workshop-abc12"
    assert project["organization"] == 1
    assert project["scm_type"] == "git"

    credential = json.loads(requests_to("credentials/")[0].request.body)
    assert credential["credential_type"] == 17
    assert credential["inputs"]["bearer_token"] == "sha256~token123"

    templates = [json.loads(c.request.body) for c in requests_to("job_templates/")]
    assert len(templates) == len(JOB_TEMPLATES) == 10
    assert templates[0]["name"] == "Module1-Dynamic-Inventory-abc12"
    assert templates[0]["project"] == 11
    assert templates[0]["inventory"] == 12
    assert templates[0]["execution_environment"] is None

    associations = [c for c in responses.calls if c.request.url.endswith("/credentials/") and "job_templates/" in c.request.url]
    assert len(associations) == 10
    assert json.loads(associations[0].request.body) == {"id": 13}
    assert provisioner.stats["job_templates_created"] == 10


@responses.activate
def test_setup_all_reuses_existing_resources(provisioner, env_file):
    add_lookups()
    responses.add(responses.GET, f"{API}/projects/", json=found(21))
    responses.add(responses.GET, f"{API}/inventories/", json=found(22))
    responses.add(responses.GET, f"{API}/credentials/", json=found(23))
    responses.add(responses.GET, f"{API}/job_templates/", json=found(300))
    responses.add(responses.POST, f"{API}/job_templates/300/credentials/", json={"error": "already"}, status=400)

    assert provisioner.setup_all() is True

    assert [c.request.method for c in responses.calls].count("POST") == 10
    assert dotenv_values(env_file)["AAP_PROJECT_ID"] == "21"
    assert provisioner.stats == {
        "project_existing": 1,
        "inventory_existing": 1,
        "credential_existing": 1,
        "job_templates_existing": 10,
    }


@responses.activate
def test_project_failure_aborts_setup(provisioner, env_file, capsys):
    add_lookups()
    responses.add(responses.GET, f"{API}/projects/", json=EMPTY)
    responses.add(responses.POST, f"{API}/projects/", json={"scm_url": ["invalid"]}, status=400)

    assert provisioner.setup_all() is False

    assert "Failed to set up AAP project" in capsys.readouterr().out
    assert not requests_to("inventories/", method="GET")
    assert "AAP_PROJECT_ID" not in dotenv_values(env_file)


@responses.activate
def test_missing_credential_type_aborts_setup(provisioner):
    responses.add(responses.GET, f"{API}/organizations/", json=found(1))
    responses.add(responses.GET, f"{API}/credential_types/", json=EMPTY)
    responses.add(responses.GET, f"{API}/projects/", json=found(21))
    responses.add(responses.GET, f"{API}/inventories/", json=found(22))
    responses.add(responses.GET, f"{API}/credentials/", json=EMPTY)

    assert provisioner.setup_all() is False
    assert not requests_to("job_templates/", method="GET")


@responses.activate
def test_job_template_failure_continues(provisioner):
    provisioner.env.update({"AAP_PROJECT_ID": "11", "AAP_INVENTORY_ID": "12", "AAP_CREDENTIAL_ID": "13"})
    add_job_template_api(fail_names=["Module2-RBAC-Setup"])

    failures = provisioner.setup_job_templates()

    assert failures == 1
    assert provisioner.stats["job_templates_created"] == 9


@responses.activate
def test_job_templates_use_registered_execution_environment(provisioner):
    provisioner.env.update({"AAP_PROJECT_ID": "11", "AAP_INVENTORY_ID": "12",
                            "AAP_CREDENTIAL_ID": "13", "AAP_EE_ID": "5"})
    add_job_template_api()

    provisioner.setup_job_templates(JOB_TEMPLATES[:1])

    payload = json.loads(requests_to("job_templates/")[0].request.body)
    assert payload["execution_environment"] == 5


@responses.activate
def test_setup_execution_environment_uses_built_image(provisioner, env_file):
    provisioner.env["EE_IMAGE_NAME"] = "aap-workshop-ee:abc12"
    responses.add(responses.GET, f"{API}/organizations/", json=found(1))
    responses.add(responses.GET, f"{API}/execution_environments/", json=EMPTY)
    responses.add(responses.POST, f"{API}/execution_environments/", json={"id": 8}, status=201)

    assert provisioner.setup_execution_environment() == 8

    payload = json.loads(requests_to("execution_environments/")[0].request.body)
    assert payload["name"] == "Workshop-EE-abc12"
    assert payload["image"] == "aap-workshop-ee:abc12"
    assert payload["pull"] == "missing"
    assert dotenv_values(env_file)["AAP_EE_ID"] == "8"


@responses.activate
def test_cleanup_deletes_guid_resources(provisioner):
    provisioner.env.update({"AAP_PROJECT_ID": "11", "AAP_INVENTORY_ID": "12", "AAP_CREDENTIAL_ID": ""})
    responses.add(responses.GET, f"{API}/job_templates/", json={
        "results": [{"id": 100, "name": "Module1-Dynamic-Inventory-abc12"}], "next": None,
    })
    responses.add(responses.DELETE, f"{API}/job_templates/100/", status=204)
    responses.add(responses.DELETE, f"{API}/projects/11/", status=204)
    responses.add(responses.DELETE, f"{API}/inventories/12/", status=404)

    assert provisioner.cleanup() == 2
    assert "name__contains=abc12" in responses.calls[0].request.url


@responses.activate
def test_check_prerequisites_requires_credentials(client, workshop_env):
    env = dict(workshop_env, AAP_USERNAME="", AAP_TOKEN="")
    with pytest.raises(WorkshopError, match="Neither AAP_USERNAME nor AAP_TOKEN"):
        check_aap_prerequisites(env, client)


@responses.activate
def test_check_prerequisites_unreachable_controller(client, workshop_env):
    responses.add(responses.GET, f"{API}/ping/", status=503)
    with pytest.raises(WorkshopError, match="Cannot connect to AAP Controller"):
        check_aap_prerequisites(workshop_env, client)


def test_main_show_prints_recorded_ids(env_file, capsys):
    with open(env_file, "a") as f:
        f.write("AAP_PROJECT_ID=11\n")

    assert setup_aap_resources.main(["show", "--env-file", str(env_file), "--no-color"]) == 0

    out = capsys.readouterr().out
    assert "AAP-Workshop-abc12 (ID: 11)" in out
    assert "Module3-Troubleshooting-abc12" in out


def test_main_missing_env_file(tmp_path):
    assert setup_aap_resources.main(["setup", "--env-file", str(tmp_path / ".env")]) == 1


@responses.activate
def test_main_reports_connection_errors(env_file, capsys):
    responses.add(responses.GET, f"{API}/ping/", json={"version": "4.5"})
    responses.add(responses.GET, f"{API}/organizations/",
                  body=requests.exceptions.ConnectionError("connection reset by peer"))

    assert setup_aap_resources.main(["setup", "--env-file", str(env_file), "--no-color"]) == 1
    assert "API request failed: connection reset by peer" in capsys.readouterr().out


@responses.activate
def test_main_cleanup_without_prompt_for_batch_environments(env_file, capsys):
    with open(env_file, "a") as f:
        f.write("SKIP_INTERACTIVE=true\nAAP_PROJECT_ID=11\n")
    responses.add(responses.GET, f"{API}/ping/", json={"version": "4.5"})
    responses.add(responses.GET, f"{API}/job_templates/", json={"results": [], "next": None})
    responses.add(responses.DELETE, f"{API}/projects/11/", status=204)

    with patch("setup_aap_resources.confirm") as mock_confirm:
        assert setup_aap_resources.main(["cleanup", "--env-file", str(env_file), "--no-color"]) == 0

    mock_confirm.assert_not_called()
    assert "cleanup completed (1 deleted)" in capsys.readouterr().out


def test_main_cleanup_cancelled_at_prompt(env_file, capsys):
    with patch("setup_aap_resources.confirm", return_value=False), \
            patch("setup_aap_resources.check_aap_prerequisites"):
        assert setup_aap_resources.main(["cleanup", "--env-file", str(env_file), "--no-color"]) == 0

    assert "Cleanup cancelled" in capsys.readouterr().out
