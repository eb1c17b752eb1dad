"""
Tests for the bulk workshop details parser
"""
import csv

import pytest
from dotenv import dotenv_values

import parse_workshop_details
from parse_workshop_details import (
    discover_workshop_files,
    extract_credentials,
    split_user_sections,
)

ALICE = """\
enterprise.aap-product-demos.prod-abc12
alice@example.com
Service details
OpenShift Console: https://console-openshift-console.apps.cluster-abc12.abc12.sandbox.opentlc.com
OpenShift API for command line 'oc' client: https://api.cluster-abc12.abc12.sandbox.opentlc.com:6443
Web Console Access: https://bastion.abc12.sandbox.opentlc.com
Web Console Credentials: lab-user/W3bPass
Automation Controller URL: https://aap-abc12.apps.example.com
Automation Controller Admin Login: admin
Automation Controller Admin Password: `Secr3t`
You can access your bastion via SSH:
ssh lab-user@bastion.abc12.sandbox.opentlc.com -p 30022
Make sure you use the username 'lab-user' and the password 'SshPa55' when prompted.
openshift_bearer_token: sha256~alice
guid: abc12
"""

BOB = """\
enterprise.aap-product-demos.prod-def34
bob@example.com
OpenShift Console: https://console-openshift-console.apps.cluster-def34.def34.sandbox.opentlc.com/
Automation Controller URL: https://aap-def34.apps.example.com
"""

CAROL = """\
enterprise.aap-product-demos.prod-ghi56
carol@example.com
OpenShift Console: https://console-openshift-console.apps.cluster-ghi56.ghi56.sandbox.opentlc.com
"""


@pytest.fixture
def workshop_root(tmp_path):
    (tmp_path / "workshop_details.txt").write_text("Workshop export\n\n" + ALICE + "\n" + BOB)
    (tmp_path / "workshop_details2.txt").write_text(CAROL)
    return tmp_path


def test_split_user_sections():
    sections = split_user_sections("header line\n" + ALICE + BOB, "workshop_details.txt")

    assert [s.email for s in sections] == ["alice@example.com", "bob@example.com"]
    assert sections[0].service == "enterprise.aap-product-demos.prod-abc12"
    assert sections[0].source == "workshop_details.txt"
    assert "guid: abc12" in sections[0].content
    assert "bob@example.com" not in sections[0].content


def test_section_without_email_is_ignored():
    assert split_user_sections("enterprise.aap-product-demos.x\nno email here\n") == []


def test_extract_credentials():
    creds = extract_credentials(split_user_sections(ALICE)[0].content)

    assert creds["OCP_API_URL"] == "https://api.cluster-abc12.abc12.sandbox.opentlc.com:6443"
    assert creds["OCP_CLUSTER_DOMAIN"] == "apps.cluster-abc12.abc12.sandbox.opentlc.com"
    assert creds["AAP_PASSWORD"] == "Secr3t"
    assert (creds["CONSOLE_USER"], creds["CONSOLE_PASS"]) == ("lab-user", "W3bPass")
    assert creds["SSH_HOST"] == "bastion.abc12.sandbox.opentlc.com"
    assert creds["SSH_PORT"] == "30022"
    assert creds["SSH_PASSWORD"] == "SshPa55"
    assert creds["OCP_BEARER_TOKEN"] == "sha256~alice"
    assert creds["WORKSHOP_GUID"] == "abc12"


def test_guid_derived_from_console_domain():
    creds = extract_credentials(split_user_sections(BOB)[0].content)

    assert creds["OCP_CLUSTER_DOMAIN"] == "apps.cluster-def34.def34.sandbox.opentlc.com"
    assert creds["WORKSHOP_GUID"] == "def34"
    assert creds["OCP_API_URL"] == ""
    assert creds["SSH_USER"] == "lab-user"


def test_discover_workshop_files_in_numeric_order(workshop_root):
    (workshop_root / "workshop_details10.txt").write_text(CAROL)

    names = [p.name for p in discover_workshop_files(workshop_root)]

    assert names == ["workshop_details.txt", "workshop_details2.txt", "workshop_details10.txt"]


def test_main_writes_numbered_env_files(workshop_root):
    assert parse_workshop_details.main(["--no-color"], root=workshop_root) == 0

    out_dir = workshop_root / "user_environments"
    env1 = dotenv_values(out_dir / ".env01")
    env3 = dotenv_values(out_dir / ".env03")
    assert env1["USER_EMAIL"] == "alice@example.com"
    assert env1["WORKSHOP_USER_NUM"] == "01"
    assert env1["AAP_URL"] == "https://aap-abc12.apps.example.com"
    assert env3["USER_EMAIL"] == "carol@example.com"
    assert env3["WORKSHOP_GUID"] == "ghi56"

    with open(out_dir / "users.csv", newline="") as f:
        rows = list(csv.DictReader(f))
    assert [r["User_Number"] for r in rows] == ["1", "2", "3"]
    assert rows[2]["Source_File"] == "workshop_details2.txt"
    assert rows[1]["GUID"] == "def34"

    summary = (out_dir / "summary.txt").read_text()
    assert "Total Users Processed: 3" in summary
    assert "workshop_details.txt: 2 users" in summary
    assert "Single environment workshop (3 users)" in summary


def test_main_dry_run_creates_nothing(workshop_root):
    assert parse_workshop_details.main(["--dry-run", "-f", "workshop_details.txt"], root=workshop_root) == 0
    assert not (workshop_root / "user_environments").exists()


def test_main_explicit_file_list(workshop_root, tmp_path):
    out_dir = tmp_path / "out"
    code = parse_workshop_details.main(["--files", "workshop_details2.txt", "-o", str(out_dir)], root=workshop_root)

    assert code == 0
    assert dotenv_values(out_dir / ".env01")["USER_EMAIL"] == "carol@example.com"
    assert not (out_dir / ".env02").exists()


def test_main_no_files(tmp_path):
    assert parse_workshop_details.main([], root=tmp_path) == 1
    assert parse_workshop_details.main(["--no-auto-discover"], root=tmp_path) == 1


def test_main_empty_file(tmp_path):
    (tmp_path / "workshop_details.txt").write_text("")
    assert parse_workshop_details.main([], root=tmp_path) == 1


def test_distribution_across_environments(tmp_path):
    parser = parse_workshop_details.WorkshopDetailsParser(tmp_path)

    assert parser.distribution(65, 3) == (
        "Multi-environment workshop (65 users across 3 environments)\n"
        "  2 full environments (30 users each) + 1 partial environment (5 users)"
    )
