#!/usr/bin/env python3
"""
Simple example of using the BaaS SDK.
"""
import logging
import os

from baas_sdk import BaasSDK, SDKConfig


def main():
    """
    Demonstrate basic usage of BaasSDK.

    Configuration is read from BAAS_* environment variables, e.g.
    BAAS_XHOST, BAAS_KEYSTORE, BAAS_AUTH_FILE and BAAS_PASSWD_FILE.
    """
    logging.basicConfig(level=logging.INFO)

    sender = os.environ.get("FROM_ADDRESS")
    recipient = os.environ.get("TO_ADDRESS")
    passphrase = os.environ.get("PASSPHRASE")
    if not sender or not recipient:
        print("ERROR: FROM_ADDRESS and TO_ADDRESS environment variables are required")
        return

    config = SDKConfig.from_env()
    with BaasSDK(config) as sdk:
        balance = sdk.get_balance(sender)
        if not balance.ok:
            print(f"Balance lookup failed: {balance.error}")
            return
        print(f"Balance of {sender}: {balance.result}")

        amount = 10 ** 16
        fee = sdk.calc_fee(amount)
        print(f"Service fee for {amount}: {fee.result}")

        outcome = sdk.send_transaction({"from": sender, "to": recipient, "value": hex(amount)}, passphrase)
        if outcome.ok:
            print(f"Transaction hash: {outcome.result}")
        else:
            print(f"Error sending transaction: {outcome.error}")


if __name__ == "__main__":
    main()
