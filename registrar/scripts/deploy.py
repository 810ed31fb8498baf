"""Beaker deployment script for the registry roles contract.

Compiles and deploys the roles application, funds its account for box
storage and writes the ARC-32 application specification.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

from algosdk import transaction
from algosdk.logic import get_application_address
from beaker.client import ApplicationClient

from registrar.cli.config import RegistrarConfig, create_algod_client, create_signer
from registrar.contracts.registry import get_app

# Covers the minimum balance of the app account plus a few hundred role boxes.
DEFAULT_FUNDING = 1_000_000


def generate_spec_file(app_id: int, output_dir: Path) -> Path:
    """Write ARC-32 application specification with deployment info."""
    app = get_app()
    spec_dict = app.application_spec()
    if app_id > 0:
        spec_dict.setdefault("networks", {})["localnet"] = {"appID": app_id}

    output_dir.mkdir(parents=True, exist_ok=True)
    spec_file = output_dir / "application.json"
    spec_file.write_text(json.dumps(spec_dict, indent=2, sort_keys=True))
    app.dump(str(output_dir))
    return spec_file


def deploy(funding: int = DEFAULT_FUNDING, artifacts_dir: Path = Path("artifacts")) -> int:
    """Deploy the registry roles application and return its app ID."""
    config = RegistrarConfig()
    if not config.mnemonic:
        raise ValueError("Deployer mnemonic required. Set REGISTRAR_MNEMONIC environment variable.")

    algod_client = create_algod_client(config)
    signer, deployer_addr = create_signer(config)
    print(f"Deploying registry roles with deployer account: {deployer_addr}")

    client = ApplicationClient(algod_client, app=get_app(), sender=deployer_addr, signer=signer)
    client.create()
    app_id = client.app_id

    if funding > 0:
        app_addr = get_application_address(app_id)
        sp = algod_client.suggested_params()
        pay = transaction.PaymentTxn(deployer_addr, sp, app_addr, funding)
        txid = algod_client.send_transaction(pay.sign(signer.private_key))
        transaction.wait_for_confirmation(algod_client, txid, 4)
        print(f"Funded {app_addr} with {funding} microAlgos")

    spec_file = generate_spec_file(app_id, artifacts_dir)
    print("✅ Registry roles deployed successfully!")
    print(f"App ID: {app_id}")
    print(f"Specification: {spec_file}")
    print(f"Set REGISTRAR_APP_ID={app_id} to use it from the console.")
    return app_id


def main() -> int:
    funding = int(sys.argv[1]) if len(sys.argv) > 1 else DEFAULT_FUNDING
    try:
        deploy(funding)
    except Exception as e:
        print(f"❌ Deployment failed: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
