#!/usr/bin/env python3

# Copyright 2020 Google LLC
# SPDX-License-Identifier: MIT

from pathlib import Path
import argparse
import sys

MGL_PROTOCOL_DIR = Path(__file__).resolve().parent.parent
sys.path.append(str(MGL_PROTOCOL_DIR))

from mgl_protocol import parse_registry

def main():
    parser = argparse.ArgumentParser(description='Print the resolved enum groups.')
    parser.add_argument('--header', required=True, help='Path to the glad header.')
    parser.add_argument('--xml', required=True, help='Path to gl.xml.')
    args = parser.parse_args()

    with open(args.header, 'r', encoding='utf-8') as f:
        reg = parse_registry(f, args.xml)

    groups = {}
    for xml_name, group in reg.enum_types.items():
        groups.setdefault(group.name, []).append(xml_name)

    for name in sorted(groups):
        group = reg.enum_types[groups[name][0]]
        line = name
        if groups[name] != [name]:
            line += ' (%s)' % ', '.join(groups[name])
        print(line)
        for key, symbol in group.values.items():
            line = '      %s = ' % key
            pad = 40 - len(line)
            if pad > 0:
                line += ' ' * pad
            print(line + symbol)

if __name__ == '__main__':
    main()
