import argparse

from alert_engine.engine import AlertPolicy, decide
from alert_engine.notifier import compose_message
from auth_service.credential_store import CredentialStore
from auth_service.database import init_db, make_session_factory
from logging_setup import setup_logging


def cmd_init_db(args):
    init_db(make_session_factory(args.database_url))
    print("✅ Database tables checked/created.")


def cmd_check_alert(args):
    policy = AlertPolicy(
        sms_enabled=args.sms,
        minimum_threshold=args.threshold,
        notify_at_zero=args.notify_at_zero,
    )
    decision = decide(args.previous, args.new, policy)
    print(f"Decision: {decision.value}")
    message = compose_message(decision, args.item, policy)
    if message:
        print(f"Message: {message}")


def cmd_set_2fa(args):
    factory = make_session_factory(args.database_url)
    init_db(factory)
    CredentialStore(factory).set_two_factor_enabled(args.email, args.state == "on")
    print(f"✅ 2FA {args.state} for {args.email}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Inventory auth service admin tools")
    parser.add_argument("--database-url", type=str, default=None)
    parser.add_argument("--log-level", type=str, default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init-db", help="create tables")
    p_init.set_defaults(func=cmd_init_db)

    p_alert = sub.add_parser("check-alert", help="preview the stock alert for a quantity change")
    p_alert.add_argument("--previous", type=int, required=True)
    p_alert.add_argument("--new", type=int, required=True)
    p_alert.add_argument("--threshold", type=int, default=2)
    p_alert.add_argument("--sms", action="store_true")
    p_alert.add_argument("--notify-at-zero", action="store_true")
    p_alert.add_argument("--item", type=str, default="item")
    p_alert.set_defaults(func=cmd_check_alert)

    p_2fa = sub.add_parser("set-2fa", help="switch two-factor login for an account")
    p_2fa.add_argument("email", type=str)
    p_2fa.add_argument("state", choices=["on", "off"])
    p_2fa.set_defaults(func=cmd_set_2fa)

    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    args.func(args)


if __name__ == "__main__":
    main()
