import json
from pathlib import Path

import pytest

from aap_client import AAPClient, make_session
from cluster import ClusterCLI
from workshop_common import Colors

AAP_HOST = "https://aap.example.com"
API = f"{AAP_HOST}/api/controller/v2"

DETAILS_TEXT = """\
aap_controller_web_url
    https://aap.example.com
aap_controller_admin_user
    admin
aap_controller_admin_password
    s3cret!pass
aap_controller_token

bastion_public_hostname
    bastion.abc12.example.com
bastion_ssh_port
    30022
bastion_ssh_user_name
    lab-user
bastion_ssh_password
    sshpass
openshift_console_url
    https://console-openshift-console.apps.cluster-abc12.example.com
openshift_api_url
    https://api.cluster-abc12.example.com:6443
openshift_bearer_token
    sha256~token123
openshift_client_download_url
    http://downloads.example.com/oc.tar.gz
openshift_cluster_ingress_domain
    apps.cluster-abc12.example.com
guid
    abc12
openshift_kubeadmin_password
    kubeadmin-pass
"""


class FakeCluster(ClusterCLI):
    """ClusterCLI whose commands are answered from a lookup table."""

    def __init__(self, commands=None, binary="oc"):
        super().__init__(binary)
        self.commands = dict(commands or {})
        self.calls = []

    def run(self, args, timeout=None):
        self.calls.append(list(args))
        return self.commands.get(tuple(args), (False, "Error from server (NotFound)"))

    def add(self, *args, output=""):
        self.commands[tuple(args)] = (True, output)


@pytest.fixture(autouse=True)
def no_colors(monkeypatch):
    for name in ("RED", "GREEN", "YELLOW", "BLUE", "CYAN", "BOLD", "END"):
        monkeypatch.setattr(Colors, name, "")


@pytest.fixture
def details_file(tmp_path) -> Path:
    path = tmp_path / "details.txt"
    path.write_text(DETAILS_TEXT)
    return path


@pytest.fixture
def workshop_env():
    return {
        "AAP_URL": AAP_HOST,
        "AAP_USERNAME": "admin",
        "AAP_PASSWORD": "secret",
        "AAP_TOKEN": "",
        "WORKSHOP_GUID": "abc12",
        "OCP_API_URL": "https://api.cluster-abc12.example.com:6443",
        "OCP_BEARER_TOKEN": "sha256~token123",
        "OCP_CLUSTER_DOMAIN": "apps.cluster-abc12.example.com",
    }


@pytest.fixture
def env_file(tmp_path, workshop_env) -> Path:
    path = tmp_path / ".env"
    path.write_text("".join(f"{key}={value}\n" for key, value in workshop_env.items()))
    return path


@pytest.fixture
def client() -> AAPClient:
    return AAPClient(AAP_HOST, make_session(username="admin", password="secret"))


@pytest.fixture
def module2_cluster():
    """Cluster state after all four Module 2 exercises ran in ims-test."""
    ns = "ims-test"
    cli = FakeCluster()
    namespace = {"metadata": {"name": ns, "labels": {"workshop.redhat.com/module": "module2"}}}
    cli.add("get", "namespace", ns, "-o", "json", output=json.dumps(namespace))
    for account in ("ims-connector-sa", "ims-reader", "ims-operator"):
        cli.add("get", "serviceaccount", account, "-n", ns)
    cli.add("get", "role", "ims-namespace-operations", "-n", ns)
    cli.add("get", "rolebindings", "-n", ns, "--no-headers", output="ims-reader-binding\nims-operator-binding")
    cli.add("get", "clusterrole", "ims-cluster-operations")
    cli.add("get", "deployment", "ims-connector", "-n", ns)
    cli.add("get", "deployment", "ims-connector", "-n", ns, "-o", "jsonpath={.status.readyReplicas}", output="2")
    cli.add("get", "deployment", "ims-connector", "-n", ns, "-o", "jsonpath={.spec.replicas}", output="2")
    cli.add("get", "deployment", "ims-connector", "-n", ns, "-o", "jsonpath={.metadata.resourceVersion}",
            output="48213")
    deployment = {"metadata": {"annotations": {"deployment.workshop.redhat.com/last-operation": "rollback"}}}
    cli.add("get", "deployment", "ims-connector", "-n", ns, "-o", "json", output=json.dumps(deployment))
    cli.add("get", "configmap", "ims-connector-config", "-n", ns)
    cli.add("get", "secret", "ims-connector-secret", "-n", ns)
    cli.add("get", "service", "ims-connector-service", "-n", ns)
    return cli
