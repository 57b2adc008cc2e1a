#!/usr/bin/env python3
"""
InboxHub - Interactive Menu Launcher
Run this file to reach every CLI command through a simple menu.

Usage:
    python main.py
"""

import subprocess
import sys
import os

PYTHON = sys.executable
INBOXHUB = [PYTHON, "inboxhub/cli/main.py"]

# Project root on PYTHONPATH so 'inboxhub' is importable
ENV = os.environ.copy()
ENV["PYTHONPATH"] = os.path.dirname(os.path.abspath(__file__))


def run(args: list[str]):
    """Run a CLI command and return to the menu when done."""
    print()
    subprocess.run(INBOXHUB + args, env=ENV)
    print()
    input("  Press Enter to return to menu...")


def prompt(label: str, required: bool = True) -> str:
    """Prompt for input. Returns empty string if optional and skipped."""
    while True:
        value = input(f"  {label}: ").strip()
        if value:
            return value
        if not required:
            return ""
        print("  (required - please enter a value)")


def prompt_optional(label: str) -> str:
    return prompt(f"{label} (optional, Enter to skip)", required=False)


def yes(label: str) -> bool:
    return input(f"  {label} (y/N): ").strip().lower() == "y"


def clear():
    os.system("cls" if os.name == "nt" else "clear")


# =============================================================================
# COMMAND HANDLERS
# =============================================================================

def contacts_list():
    args = ["contacts", "list"]
    t = prompt_optional("Tab (all/clients/personal/subscriptions)")
    f = prompt_optional("Filter (all/vip/muted)")
    s = prompt_optional("Search name or email")
    o = prompt_optional("Sort by (last_seen_at/email_count/name)")
    p = prompt_optional("Page")
    if t: args += ["--tab", t]
    if f: args += ["--filter", f]
    if s: args += ["--search", s]
    if o: args += ["--sort", o]
    if p: args += ["--page", p]
    run(args)

def contacts_show():
    run(["contacts", "show", prompt("Contact ID")])

def contacts_vip():
    run(["contacts", "vip", prompt("Contact ID")])

def contacts_mute():
    run(["contacts", "mute", prompt("Contact ID")])

def contacts_mark_vip():
    ids = prompt("Contact IDs - space separated")
    run(["contacts", "mark-vip"] + ids.split())

def timeline():
    args = ["timeline"]
    if yes("Include done?"): args += ["--show-done"]
    t = prompt_optional("Date type (deadline/event/payment_due/...)")
    h = prompt_optional("Only the next N days")
    if t: args += ["--type", t]
    if h: args += ["--horizon", h]
    run(args)

def dates_ack():
    run(["dates", "ack", prompt("Date ID")])

def dates_snooze():
    did = prompt("Date ID")
    run(["dates", "snooze", did, prompt("Snooze until (YYYY-MM-DD)")])

def dates_hide():
    run(["dates", "hide", prompt("Date ID")])

def sync_now():
    run(["sync", "now"])

def sync_status():
    run(["sync", "status"])

def sync_watch():
    args = ["sync", "watch"]
    n = prompt_optional("Number of refreshes (Enter = until Ctrl-C)")
    if n: args += ["--iterations", n]
    run(args)

def analysis_show():
    run(["analysis", "show", prompt("Email ID")])

def analysis_run():
    run(["analysis", "run", prompt("Email ID")])

def profile_show():
    run(["profile", "show"])

def idea_add():
    run(["ideas", "add", prompt("Idea")])

def onboard():
    run(["onboard"])

def brief():
    args = ["brief"]
    m = prompt_optional("Model (claude/deepseek-chat/deepseek-reasoner)")
    if m: args += ["--model", m]
    run(args)


# =============================================================================
# MENU LAYOUT
# =============================================================================

MENU = [
    ("CONTACTS", [
        ("List contacts",                contacts_list),
        ("Show contact details",         contacts_show),
        ("Toggle VIP",                   contacts_vip),
        ("Toggle mute",                  contacts_mute),
        ("Mark several as VIP",          contacts_mark_vip),
    ]),
    ("TIMELINE", [
        ("Show timeline",                timeline),
        ("Acknowledge a date",           dates_ack),
        ("Snooze a date",                dates_snooze),
        ("Hide a date",                  dates_hide),
    ]),
    ("SYNC", [
        ("Sync now",                     sync_now),
        ("Sync status",                  sync_status),
        ("Watch sync status",            sync_watch),
    ]),
    ("EMAIL ANALYSIS", [
        ("Show analysis",                analysis_show),
        ("Re-run analysis",              analysis_run),
    ]),
    ("ACCOUNT", [
        ("Show profile",                 profile_show),
        ("Save an idea",                 idea_add),
        ("Setup wizard",                 onboard),
        ("Daily brief (AI)",             brief),
    ]),
]


def print_menu():
    clear()
    print("=" * 50)
    print("   INBOXHUB")
    print("=" * 50)

    n = 1
    numbering = {}

    for section, commands in MENU:
        print(f"\n  {section}")
        print(f"  {'-' * len(section)}")
        for label, handler in commands:
            print(f"  {n:>2}.  {label}")
            numbering[n] = handler
            n += 1

    print("\n" + "=" * 50)
    print("   0.  Exit")
    print("=" * 50)
    return numbering


def main():
    while True:
        numbering = print_menu()

        try:
            choice = input("\n  Select a command: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\n  Goodbye!\n")
            break

        if choice == "0" or choice.lower() in ("q", "quit", "exit"):
            print("\n  Goodbye!\n")
            break

        try:
            n = int(choice)
        except ValueError:
            print("\n  Please enter a number.")
            input("  Press Enter to continue...")
            continue

        if n in numbering:
            clear()
            numbering[n]()
        else:
            print(f"\n  Invalid selection: {choice}")
            input("  Press Enter to continue...")


if __name__ == "__main__":
    main()
