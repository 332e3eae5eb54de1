# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (C) 2024 Akshat Kotpalliwar

"""
Code generation for running scripts under the heap supervisor
"""

from pathlib import Path
import textwrap


def generate_supervisor_code(**config):
    """Generate the Python code injected into the target process"""
    package_root = Path(__file__).resolve().parent.parent
    package_root_literal = str(package_root).replace("\\", "\\\\")

    supervisor_code = textwrap.dedent(
        f"""
        import os
        import sys
        import traceback

        PACKAGE_ROOT = r"{package_root_literal}"
        if PACKAGE_ROOT and PACKAGE_ROOT not in sys.path:
            sys.path.insert(0, PACKAGE_ROOT)

        from gc_notifier import maxheap

        if {config.get('verbose', False)}:
            import logging
            logging.basicConfig(stream=sys.stderr, level=logging.INFO,
                                format="GMEM %(levelname)s | %(name)s | %(message)s")

        supervisor = maxheap.start_from_env(interval={float(config.get('interval', 0.25))})
        low, high = maxheap.get_limits()
        if low == maxheap.UNLIMITED:
            print("GMEM Heap supervisor idle (no limits set)", file=sys.stderr)
        else:
            print(f"GMEM Heap supervisor initialized (low={{low}}, high={{high}})", file=sys.stderr)

        try:
            if sys.argv[1] == '-m':
                import runpy
                module_name = sys.argv[2]
                sys.argv = [module_name] + sys.argv[3:]
                runpy.run_module(module_name, run_name="__main__", alter_sys=True)
            else:
                script_path = sys.argv[1]
                script_args = sys.argv[2:]

                script_dir = os.path.dirname(os.path.abspath(script_path))
                if script_dir and script_dir not in sys.path:
                    sys.path.insert(0, script_dir)

                sys.argv = [script_path] + script_args

                # Use runpy to execute the script as if it were run directly
                # This preserves __name__ == "__main__" behavior
                import runpy
                runpy.run_path(script_path, run_name="__main__")
        except SystemExit:
            raise
        except Exception as exc:  # noqa: BLE001
            print(f"GMEM Error running script: {{exc}}", file=sys.stderr)
            traceback.print_exc()
            sys.exit(1)
        finally:
            maxheap.stop()
            print(f"GMEM Heap supervisor forced {{supervisor.collections}} collections, "
                  f"{{supervisor.releases}} releases", file=sys.stderr)
        """
    )

    return supervisor_code
