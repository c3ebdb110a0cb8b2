"""
geoshare.main
~~~~~~~~~~~~~

This module implements the system's main script.

It runs a single host event, read as JSON from a file or from standard input,
against Salesforce::

    {
        "before": {"Pre_Lead__c": "a01...", "Pincode__c": "a02..."},
        "after": {"Pre_Lead__c": "a01...", "Pincode__c": "a03..."},
        "initiating_user_id": "005...",
        "depth": 1,
        "correlation_id": "..."
    }
"""

import argparse
import json
import sys
from logging import DEBUG, INFO, getLogger, info

from geoshare.clients.salesforce import SalesforceClient
from geoshare.engine import ShareRecordEngine
from geoshare.models import Invocation, ShareResult


def load_invocation(raw: str) -> Invocation:
    """ Build an `Invocation` from a JSON event document. """
    event: dict = json.loads(raw)

    return Invocation(
        initiating_user_id=event["initiating_user_id"],
        before=event.get("before"),
        after=event.get("after"),
        depth=int(event.get("depth", 1)),
        correlation_id=event.get("correlation_id", ""),
    )


def run(raw: str) -> ShareResult:
    """ Share the record of one event. """
    info("Initiating client.")
    sfc: SalesforceClient = SalesforceClient()

    result: ShareResult = ShareRecordEngine(sfc).execute(load_invocation(raw))

    if result.skipped:
        info(f"Skipped: {result.skipped}.")
    else:
        info(
            f"Revoked {len(result.revoked)}, granted {len(result.granted)}, "
            f"new owner {result.owner_id or 'none'}."
        )

    return result


def main(argv: list = None) -> None:
    parser = argparse.ArgumentParser(
        prog="geoshare", description="Share a record with the users of its geography."
    )
    parser.add_argument("event", nargs="?", help="event JSON file; reads stdin when omitted")
    parser.add_argument("-v", "--verbose", action="store_true", help="log SOQL and details")
    args = parser.parse_args(argv)

    getLogger().setLevel(DEBUG if args.verbose else INFO)

    if args.event:
        with open(args.event, "r") as f:
            raw: str = f.read()
    else:
        raw = sys.stdin.read()

    run(raw)


if __name__ == "__main__":
    main()
