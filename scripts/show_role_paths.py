#!/usr/bin/env python3
"""
Show a generated role path file as a terminal table

Usage: python scripts/show_role_paths.py combined-output.json
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rolemap.report_utils import build_role_matrix, parse_output, sort_unmatched_first

# ANSI color codes
RESET = '\033[0m'
BOLD = '\033[1m'
GREEN = '\033[92m'
YELLOW = '\033[93m'
RED = '\033[91m'
CYAN = '\033[96m'


def main(output_file: str) -> int:
    try:
        with open(output_file, encoding='utf-8') as f:
            records = parse_output(f.read())
    except (OSError, ValueError) as e:
        print(f"ERROR: Cannot read {output_file}: {e}")
        return 1

    if not records:
        print(f"{output_file} contains no entries")
        return 0

    matrix = build_role_matrix(sort_unmatched_first(records))
    rows = matrix['rows']
    columns = matrix['columns']

    print(f'\n{BOLD}{CYAN}╔══════════════════════════════════════════════════════════════════════════════╗{RESET}')
    print(f'{BOLD}{CYAN}║                        GENERATED ROLE PATH MATRIX                            ║{RESET}')
    print(f'{BOLD}{CYAN}║            (One permission per endpoint, unmatched endpoints first)          ║{RESET}')
    print(f'{BOLD}{CYAN}╚══════════════════════════════════════════════════════════════════════════════╝{RESET}\n')

    endpoint_width = min(max(len(row) for row in rows) + 2, 60)
    route_width = min(max(len(route or '') for route in matrix['routes']) + 2, 40)
    route_width = max(route_width, len('Route') + 2)
    col_width = 8

    header = f"{BOLD}{'Endpoint':<{endpoint_width}}{'Route':<{route_width}}"
    for col in columns:
        header += f"{col:^{col_width}}"
    header += f"{'Grant'}{RESET}"
    print(header)
    print('─' * (endpoint_width + route_width + len(columns) * col_width + 20))

    for i, row_name in enumerate(rows):
        ep_name = row_name
        if len(ep_name) > endpoint_width - 2:
            ep_name = ep_name[:endpoint_width - 5] + '...'

        route = matrix['routes'][i] or ''
        if len(route) > route_width - 2:
            route = route[:route_width - 5] + '...'

        line = f"{ep_name:<{endpoint_width}}{route:<{route_width}}"
        for val in matrix['matrix'][i]:
            if val:
                line += f"{GREEN}{'✓':^{col_width}}{RESET}"
            else:
                line += f"{' ':^{col_width}}"

        if matrix['row_matched'][i]:
            line += matrix['grants'][i]
        else:
            line += f"{RED}(NEEDS ROUTE/PERMISSION){RESET}"
        print(line)

    matched = sum(matrix['row_matched'])
    print(f'\n{BOLD}Summary:{RESET}')
    print(f"  Matched:   {matched}/{len(rows)} ({matched / len(rows) * 100:.1f}%)")
    print(f"  Unmatched: {YELLOW}{len(rows) - matched}{RESET}\n")
    return 0


if __name__ == '__main__':
    report_file = sys.argv[1] if len(sys.argv) > 1 else 'combined-output.json'
    sys.exit(main(report_file))
