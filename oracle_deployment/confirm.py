import sys

from oracle_deployment.constants import ZERO_ADDRESS
from oracle_deployment.params import DeploymentParameters


def _continue() -> None:
    """Asks the user to continue."""
    answer = input("Continue Y/N? ")
    if answer.lower().strip() == "n":
        print("Aborting deployment!")
        sys.exit(-1)


def _confirm_parameters(parameters: DeploymentParameters) -> None:
    """Shows the contracts and initializer values about to be deployed and asks to continue."""
    print(f"\nContracts for {parameters.name}")
    for role, contract_name in parameters.contracts.items():
        print(f"\t{role}={contract_name}")

    print("\nInitializer currencies")
    for currency in parameters.currencies:
        address = currency.ethereum_address
        if address == ZERO_ADDRESS:
            address = "<none>"
        print(
            f"\t{currency.id}: decimals={currency.decimals}, "
            f"abstract={currency.is_abstract_currency}, address={address}"
        )

    print("\nInitializer pairs")
    if not parameters.pairs:
        print("\t(i) No pairs")
    for pair in parameters.pairs:
        print(f"\t{pair.id}: quote={pair.quote_currency_id}, base={pair.base_currency_id}")

    print(
        "\nFour contracts will be created. An interrupted run leaves the "
        "contracts deployed so far orphaned."
    )
    _continue()
