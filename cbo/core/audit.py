from datetime import datetime

from cbo.core.config import LOGS_DIR


def write_audit_log(user_name: str, user_role: str, action: str, details: str = ""):
    """Append one line to this month's audit file."""
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    month_str = datetime.now().strftime("%Y_%m")
    log_file = LOGS_DIR / f"audit_{month_str}.log"
    ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    with open(log_file, "a", encoding="utf-8") as f:
        f.write(f"{ts} | {user_role} | {user_name} | {action} | {details}\n")


def audit_actor(actor, user_name: str, action: str, details: str = ""):
    """Audit an action taken by an Actor, labelled with its highest role."""
    if actor is None:
        role = "anonymous"
    elif actor.is_admin:
        role = "admin"
    elif actor.is_staff:
        role = "treasurer"
    else:
        role = "member"
    write_audit_log(user_name, role, action, details)
