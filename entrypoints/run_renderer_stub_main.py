import runpy
import traceback

def main():
    try:
        runpy.run_module("renderer_stub.renderer_server", run_name="__main__")
    except Exception:
        traceback.print_exc()

if __name__ == "__main__":
    main()
