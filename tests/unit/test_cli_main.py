"""Tests for did_anchor.cli.main — CLI commands via Click test runner."""
from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from did_anchor import __version__
from did_anchor.anchor.registry import InMemoryRegistryAnchor
from did_anchor.cli.main import cli
from did_anchor.config import DIDConfig
from did_anchor.did.signer import Secp256k1Signer
from did_anchor.service import DIDService
from did_anchor.storage.content import InMemoryContentStore

ISSUER = "did:go:issuer1"
SUBJECT = "did:go:subj1"
ISSUER_PRIVATE_KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
OTHER_PRIVATE_KEY = "0x" + "11" * 32

_CLEAN_ENV = {
    "WEB3_RPC_URL": None,
    "WEB3_DID_REGISTRY": None,
    "WEB3_IPFS_URL": None,
    "WEB3_PRIVATE_KEY": None,
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner(env=_CLEAN_ENV)


@pytest.fixture()
def service(
    monkeypatch: pytest.MonkeyPatch,
    anchor: InMemoryRegistryAnchor,
    store: InMemoryContentStore,
    clock,
) -> DIDService:
    service = DIDService(anchor, store, clock=clock)
    configs: list[DIDConfig] = []

    def _from_config(config: DIDConfig) -> DIDService:
        configs.append(config)
        return service

    monkeypatch.setattr(DIDService, "from_config", staticmethod(_from_config))
    service.configs = configs  # type: ignore[attr-defined]
    return service


@pytest.fixture()
def credential_file(
    runner: CliRunner, service: DIDService, signer: Secp256k1Signer, tmp_path: Path
) -> Path:
    service.create(ISSUER, signer)
    path = tmp_path / "credential.json"
    result = runner.invoke(
        cli,
        [
            "claim", "sign",
            "--id", "urn:1",
            "--type", "ProofOfAge",
            "--issuer", ISSUER,
            "--subject", SUBJECT,
            "--data", '{"age": 21, "name": "Alice"}',
            "--output", str(path),
            "-pk", ISSUER_PRIVATE_KEY,
        ],
    )
    assert result.exit_code == 0, result.output
    return path


# ---------------------------------------------------------------------------
# Root CLI
# ---------------------------------------------------------------------------


class TestRootCLI:
    def test_help_exits_zero(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "did" in result.output
        assert "claim" in result.output

    def test_version_command(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["version"])
        assert result.exit_code == 0
        assert f"did-anchor v{__version__}" in result.output

    def test_version_option(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_timeout_out_of_range(self, runner: CliRunner, service: DIDService) -> None:
        result = runner.invoke(cli, ["--timeout", "5", "did", "hash", "did:go:abc123"])
        assert result.exit_code == 1
        assert "between 10 and 60" in result.output

    def test_options_reach_config(self, runner: CliRunner, service: DIDService) -> None:
        result = runner.invoke(
            cli,
            [
                "--rpc-url", "http://localhost:8545",
                "--ipfs-url", "http://localhost:5001",
                "--timeout", "20",
                "did", "hash", "did:go:abc123",
                "--registry", "0x" + "ab" * 20,
            ],
        )
        assert result.exit_code == 0
        config = service.configs[-1]  # type: ignore[attr-defined]
        assert config.rpc_url == "http://localhost:8545"
        assert config.ipfs_api_url == "http://localhost:5001"
        assert config.confirmation_timeout == 20.0
        assert config.registry_address == "0x" + "ab" * 20

    def test_environment_reaches_config(self, service: DIDService) -> None:
        runner = CliRunner(env={**_CLEAN_ENV, "WEB3_RPC_URL": "http://chain:8545"})
        result = runner.invoke(cli, ["did", "hash", "did:go:abc123"])
        assert result.exit_code == 0
        assert service.configs[-1].rpc_url == "http://chain:8545"  # type: ignore[attr-defined]


# ---------------------------------------------------------------------------
# did commands
# ---------------------------------------------------------------------------


class TestDidCreate:
    def test_create(
        self, runner: CliRunner, service: DIDService, signer: Secp256k1Signer
    ) -> None:
        result = runner.invoke(cli, ["did", "create", "did:go:abc123", "-pk", ISSUER_PRIVATE_KEY])
        assert result.exit_code == 0, result.output
        content_hash = service.content_hash("did:go:abc123")
        assert "Successfully registered DID: did:go:abc123" in result.output
        assert f"DID Document IPFS Hash: {content_hash}" in result.output
        assert "Transaction address: 0x" in result.output
        assert service.owner("did:go:abc123") == signer.address

    def test_private_key_from_environment(self, service: DIDService) -> None:
        runner = CliRunner(env={**_CLEAN_ENV, "WEB3_PRIVATE_KEY": ISSUER_PRIVATE_KEY})
        result = runner.invoke(cli, ["did", "create", "did:go:abc123"])
        assert result.exit_code == 0, result.output

    def test_create_json(self, runner: CliRunner, service: DIDService) -> None:
        result = runner.invoke(
            cli, ["--format", "json", "did", "create", "did:go:abc123", "-pk", ISSUER_PRIVATE_KEY]
        )
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["did"] == "did:go:abc123"
        assert payload["hash"] == service.content_hash("did:go:abc123")
        assert payload["transaction"].startswith("0x")

    def test_missing_private_key(self, runner: CliRunner, service: DIDService) -> None:
        result = runner.invoke(cli, ["did", "create", "did:go:abc123"])
        assert result.exit_code == 1
        assert "Private key required" in result.output

    def test_invalid_private_key(self, runner: CliRunner, service: DIDService) -> None:
        result = runner.invoke(cli, ["did", "create", "did:go:abc123", "-pk", "0x1234"])
        assert result.exit_code == 1
        assert "Cannot parse private key" in result.output
        assert "0x1234" not in result.output

    def test_oversize_identifier(self, runner: CliRunner, service: DIDService) -> None:
        result = runner.invoke(
            cli, ["did", "create", "did:go:" + "x" * 33, "-pk", ISSUER_PRIVATE_KEY]
        )
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert service.content_hash("did:go:" + "x" * 32) == ""

    def test_owned_by_another_account(self, runner: CliRunner, service: DIDService) -> None:
        runner.invoke(cli, ["did", "create", "did:go:abc123", "-pk", ISSUER_PRIVATE_KEY])
        result = runner.invoke(cli, ["did", "create", "did:go:abc123", "-pk", OTHER_PRIVATE_KEY])
        assert result.exit_code == 1
        assert "owned by" in result.output


class TestDidLookups:
    @pytest.fixture(autouse=True)
    def _anchored(self, service: DIDService, signer: Secp256k1Signer) -> None:
        service.create("did:go:abc123", signer)

    def test_owner(self, runner: CliRunner, signer: Secp256k1Signer) -> None:
        result = runner.invoke(cli, ["did", "owner", "did:go:abc123"])
        assert result.exit_code == 0
        assert result.output.strip() == signer.address

    def test_owner_json(self, runner: CliRunner, signer: Secp256k1Signer) -> None:
        result = runner.invoke(cli, ["-f", "json", "did", "owner", "did:go:abc123"])
        assert json.loads(result.output) == {"did": "did:go:abc123", "owner": signer.address}

    def test_hash(self, runner: CliRunner, service: DIDService) -> None:
        result = runner.invoke(cli, ["did", "hash", "did:go:abc123"])
        assert result.exit_code == 0
        assert result.output.strip() == service.content_hash("did:go:abc123")

    def test_hash_json(self, runner: CliRunner, service: DIDService) -> None:
        result = runner.invoke(cli, ["-f", "json", "did", "hash", "did:go:abc123"])
        payload = json.loads(result.output)
        assert payload["hash"] == service.content_hash("did:go:abc123")

    def test_show(self, runner: CliRunner, service: DIDService) -> None:
        result = runner.invoke(cli, ["did", "show", "did:go:abc123"])
        assert result.exit_code == 0
        document = json.loads(result.output)
        assert document["id"] == "did:go:abc123"
        assert document["publicKey"][0]["id"] == "did:go:abc123#owner"

    def test_show_unanchored(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["did", "show", "did:go:nobody"])
        assert result.exit_code == 1
        assert "not anchored" in result.output

    def test_invalid_identifier(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["did", "owner", "not-a-did"])
        assert result.exit_code == 1
        assert "Invalid DID" in result.output


# ---------------------------------------------------------------------------
# claim commands
# ---------------------------------------------------------------------------


class TestClaimSign:
    def test_sign_to_stdout(self, runner: CliRunner, service: DIDService) -> None:
        result = runner.invoke(
            cli,
            [
                "claim", "sign",
                "--id", "urn:1",
                "--type", "ProofOfAge",
                "--issuer", ISSUER,
                "--subject", SUBJECT,
                "--data", '{"age": 21}',
                "-pk", ISSUER_PRIVATE_KEY,
            ],
        )
        assert result.exit_code == 0, result.output
        credential = json.loads(result.output)
        assert credential["type"] == ["VerifiableCredential", "ProofOfAge"]
        assert credential["issuer"] == ISSUER
        assert credential["issuanceDate"] == "2019-05-01T12:00:00Z"
        assert credential["credentialSubject"] == {"age": 21, "id": SUBJECT}
        assert credential["proof"]["type"] == "Secp256k1VerificationKey2018"

    def test_sign_to_file(self, credential_file: Path) -> None:
        credential = json.loads(credential_file.read_text(encoding="utf-8"))
        assert credential["id"] == "urn:1"

    @pytest.mark.parametrize(
        ("args", "message"),
        [
            (["--type", "ProofOfAge", "--issuer", ISSUER, "--subject", SUBJECT], "Credential ID"),
            (["--id", "urn:1", "--issuer", ISSUER, "--subject", SUBJECT], "Credential type"),
            (["--id", "urn:1", "--type", "ProofOfAge", "--subject", SUBJECT], "issuer DID"),
            (
                ["--id", "urn:1", "--type", "ProofOfAge", "--issuer", ISSUER, "--subject", SUBJECT,
                 "--data", "{age"],
                "Cannot parse subject JSON data",
            ),
        ],
    )
    def test_sign_validation(
        self, runner: CliRunner, service: DIDService, args: list[str], message: str
    ) -> None:
        result = runner.invoke(cli, ["claim", "sign", *args, "-pk", ISSUER_PRIVATE_KEY])
        assert result.exit_code == 1
        assert message in result.output


class TestClaimVerify:
    def test_verified_layout(self, runner: CliRunner, credential_file: Path) -> None:
        result = runner.invoke(cli, ["claim", "verify", str(credential_file)])
        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[:8] == [
            "ID:      urn:1",
            "Type:    VerifiableCredential, ProofOfAge",
            "Status:  VERIFIED",
            "",
            f"Subject:   {SUBJECT}",
            f"Issuer:    {ISSUER}",
            "Issued On: 2019-05-01T12:00:00Z",
            "",
        ]
        assert lines[8:11] == ["CLAIMS:", "age: 21", "name: Alice"]

    def test_verified_json(self, runner: CliRunner, credential_file: Path) -> None:
        result = runner.invoke(cli, ["--format", "json", "claim", "verify", str(credential_file)])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["verified"] is True
        assert payload["id"] == "urn:1"
        assert payload["key"] == ISSUER + "#owner"
        assert payload["claims"] == {"age": 21, "name": "Alice"}

    def test_tampered_credential(self, runner: CliRunner, credential_file: Path) -> None:
        credential = json.loads(credential_file.read_text(encoding="utf-8"))
        credential["credentialSubject"]["age"] = 30
        credential_file.write_text(json.dumps(credential), encoding="utf-8")

        result = runner.invoke(cli, ["claim", "verify", str(credential_file)])
        assert result.exit_code == 1
        assert "Status: NOT VERIFIED" in result.output
        assert "Reason:" in result.output

    def test_tampered_credential_json(self, runner: CliRunner, credential_file: Path) -> None:
        credential = json.loads(credential_file.read_text(encoding="utf-8"))
        credential["issuanceDate"] = "2020-01-01T00:00:00Z"
        credential_file.write_text(json.dumps(credential), encoding="utf-8")

        result = runner.invoke(cli, ["-f", "json", "claim", "verify", str(credential_file)])
        assert result.exit_code == 1
        assert json.loads(result.output)["verified"] is False

    def test_missing_file(self, runner: CliRunner, service: DIDService, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["claim", "verify", str(tmp_path / "missing.json")])
        assert result.exit_code == 1
        assert "Cannot read file" in result.output

    def test_malformed_file(self, runner: CliRunner, service: DIDService, tmp_path: Path) -> None:
        path = tmp_path / "credential.json"
        path.write_text("[]", encoding="utf-8")
        result = runner.invoke(cli, ["claim", "verify", str(path)])
        assert result.exit_code == 1
        assert "Error:" in result.output
