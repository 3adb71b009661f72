import subprocess
import sys
import os

TEST_DIR = "huddle/tests"


def _test_env():
    os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
    os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
    os.environ["DEBUG"] = "true"
    os.environ["RATE_LIMIT_ENABLED"] = "false"
    os.environ["SCHEDULER_ENABLED"] = "false"


def run_tests():
    """Run all tests with proper setup"""

    print("🧪 Starting Huddle Tests...")
    print("=" * 60)

    if not os.path.exists("huddle"):
        print("❌ Error: Please run this script from the project root directory")
        print("   (Should contain huddle/ folder)")
        return 1

    _test_env()

    test_command = [
        sys.executable, "-m", "pytest",
        f"{TEST_DIR}/",
        "-v",
        "--tb=short",
        "--disable-warnings",
        "-x"
    ]

    print(f"🚀 Running command: {' '.join(test_command)}")
    print("-" * 60)

    try:
        result = subprocess.run(test_command, timeout=300)

        if result.returncode == 0:
            print("\n🎉 All tests passed!")
            return 0
        else:
            print(f"\n❌ Tests failed with exit code {result.returncode}")
            return result.returncode

    except subprocess.TimeoutExpired:
        print("\n⏰ Tests timed out after 5 minutes")
        return 1
    except KeyboardInterrupt:
        print("\n🛑 Tests interrupted by user")
        return 1


def run_single_test(test_name):
    if not os.path.exists("huddle"):
        print("❌ Error: Please run this script from the project root directory")
        return 1

    test_path = f"{TEST_DIR}/test_{test_name}.py"
    if not os.path.exists(test_path):
        print(f"❌ Test file {test_path} not found")
        available_tests = [
            f.replace("test_", "").replace(".py", "")
            for f in os.listdir(TEST_DIR)
            if f.startswith("test_") and f.endswith(".py") and f != "test_utils.py"
        ]
        print(f"Available tests: {', '.join(sorted(available_tests))}")
        return 1

    _test_env()

    print(f"🧪 Running single test: {test_name}")
    print("=" * 40)

    result = subprocess.run([
        sys.executable, "-m", "pytest",
        test_path,
        "-v",
        "--tb=short",
        "--disable-warnings"
    ])

    return result.returncode


if __name__ == "__main__":
    if len(sys.argv) > 1:
        exit_code = run_single_test(sys.argv[1])
    else:
        exit_code = run_tests()

    sys.exit(exit_code)
