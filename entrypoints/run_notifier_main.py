import runpy
import sys
import traceback

def main():
    try:
        # Equivalent to: python -m overlay_notifier.dev.send_notification
        runpy.run_module("overlay_notifier.dev.send_notification", run_name="__main__")
    except SystemExit:
        raise
    except Exception:
        traceback.print_exc()
        if getattr(sys, "frozen", False):
            input("\nPress Enter to exit...")
        sys.exit(1)

if __name__ == "__main__":
    main()
