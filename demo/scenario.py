import argparse
import shutil
import subprocess
import sys
import time
from pathlib import Path

# Setup paths that are safe to use
TMP_DIR = Path("tmp").absolute()
ORIGIN_PATH = TMP_DIR / "demo-origin.git"


def run_step(step_num: int, title: str):
    print(f"\n=== Step {step_num}: {title} ===")


def print_info(msg: str):
    print(f"[INFO] {msg}")


def ref_store(work_dir: Path, *args: str) -> list[str]:
    return [
        sys.executable,
        "-m",
        "ref_store.cli",
        "--remote",
        str(ORIGIN_PATH),
        "--ref",
        "demo",
        "--work-dir",
        str(work_dir),
        "--backoff-ms",
        "50",
        *args,
    ]


def main():
    parser = argparse.ArgumentParser(description="Concurrent writers demo")
    parser.add_argument("--writers", type=int, default=5, help="Number of writers")
    args = parser.parse_args()

    # Cleanup previous runs
    if TMP_DIR.exists():
        shutil.rmtree(TMP_DIR)
    TMP_DIR.mkdir(parents=True)

    run_step(1, "Initialize bare remote")
    subprocess.run(
        ["git", "init", "--bare", "--quiet", str(ORIGIN_PATH)], check=True
    )
    print_info(f"Remote at {ORIGIN_PATH}, ref 'demo' does not exist yet")

    run_step(2, f"Start {args.writers} writers at once")
    writers = [
        subprocess.Popen(
            ref_store(TMP_DIR / f"writer-{i}", "-v", "put", f"item-{i}"),
            stdout=sys.stdout,
            stderr=sys.stderr,
        )
        for i in range(args.writers)
    ]
    started = time.monotonic()
    codes = [w.wait() for w in writers]
    elapsed = time.monotonic() - started
    print_info(f"Writers finished in {elapsed:.2f}s, exit codes {codes}")

    run_step(3, "Read the set from a fresh working copy")
    result = subprocess.run(
        ref_store(TMP_DIR / "reader", "show"),
        check=True,
        capture_output=True,
        text=True,
    )
    items = set(result.stdout.split())
    expected = {f"item-{i}" for i in range(args.writers)}
    print_info(f"Remote set: {sorted(items)}")

    if items != expected:
        print_info(f"Missing items: {sorted(expected - items)}")
        sys.exit(1)
    print_info("Every writer's item landed. Demo Complete.")


if __name__ == "__main__":
    main()
