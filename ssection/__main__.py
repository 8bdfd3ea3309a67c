import sys
import unittest

USAGE = """Usage:
  python -m ssection test
  python -m ssection rectangle WIDTH HEIGHT [mm|cm|m]"""


def run_tests():
    from ssection import tests

    suite = unittest.TestLoader().loadTestsFromModule(tests)
    result = unittest.TextTestRunner(verbosity=0).run(suite)
    # Non-zero exit status on failure for CI.
    sys.exit(not result.wasSuccessful())


def print_rectangle(width, height, unit='mm'):
    from ssection import SectionAnalysis

    try:
        analysis = SectionAnalysis(unit=unit)
        w, h = float(width), float(height)
        analysis.assign_outline([(0, 0), (w, 0), (w, h), (0, h), (0, 0)])
        analysis.calculate()
    except ValueError as e:
        print(f'Error: {e}')
        sys.exit(1)
    print(analysis.table().to_text())


if __name__ == '__main__':
    args = sys.argv[1:]
    if args == ['test']:
        run_tests()
    elif args and args[0] == 'rectangle' and len(args) in (3, 4):
        print_rectangle(*args[1:])
    else:
        print("Unknown command.")
        print(USAGE)
