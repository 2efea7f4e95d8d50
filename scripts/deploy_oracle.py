#!/usr/bin/python3
"""
Deploys the upgradeable price oracle: ProxyAdmin, PublisherRegistry, the Oracle
implementation and a TransparentUpgradeableProxy initialized with the currencies
and pairs of the parameters file.

ape run deploy_oracle --network bsctest --params oracle_deployment/deployment_params/oracle.yml

Re-running always deploys four new contracts; the registry of an earlier run on the
same chain is kept and the new one is written next to it (*.unmerged.json).
"""

from oracle_deployment.cli import cli

if __name__ == "__main__":
    cli()
