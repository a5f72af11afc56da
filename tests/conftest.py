import os
import sys


# Make the src/ layout and the shared fakes importable without an editable install.
_REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
for _path in (os.path.join(_REPO_ROOT, "src"), os.path.dirname(__file__)):
    if _path not in sys.path:
        sys.path.insert(0, _path)
