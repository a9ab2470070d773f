#!/usr/bin/env python3

# Copyright 2020 Google LLC
# SPDX-License-Identifier: MIT

from pathlib import Path
import argparse
import sys

MGL_PROTOCOL_DIR = Path(__file__).resolve().parent.parent
sys.path.append(str(MGL_PROTOCOL_DIR))

from mgl_overrides import CreateObjectRule, DeleteResourceRule, GenResourceRule
from mgl_protocol import build_gen, parse_registry

# rules whose consumer side calls the GL entry point they were registered for
NATIVE_CALL_RULES = (GenResourceRule, CreateObjectRule, DeleteResourceRule)

class Command:
    def __init__(self, func, command_id):
        self.func = func
        self.name = func.short_name
        self.id = str(command_id)

        # the GL entry point the consumer ends up calling
        self.gl_name = func.name

    def add_rules(self, rules):
        for rule in rules:
            if isinstance(rule, NATIVE_CALL_RULES):
                self.gl_name = rule.function_name

def get_commands(gen):
    commands = []
    for func in gen.functions:
        cmd = Command(func, gen.command_ids[func.short_name])
        cmd.add_rules(gen.tracker.lookup(func.name))
        commands.append(cmd)
    return commands

def print_commands(gen, commands):
    print('%s, %d commands' % (gen.command_id_type, len(commands)))

    for cmd in commands:
        spaces = ' ' * (6 - len(cmd.id))
        line = '    %s%s%s' % (cmd.id, spaces, cmd.name)
        if cmd.gl_name != cmd.func.name:
            pad = 40 - len(line)
            if pad > 0:
                line += ' ' * pad
            line += '/* %s */' % cmd.gl_name
        print(line)

def main():
    parser = argparse.ArgumentParser(description='Print the command id table.')
    parser.add_argument('--header', required=True, help='Path to the glad header.')
    parser.add_argument('--xml', help='Path to gl.xml.')
    args = parser.parse_args()

    with open(args.header, 'r', encoding='utf-8') as f:
        reg = parse_registry(f, args.xml)
    gen = build_gen(reg)

    print_commands(gen, get_commands(gen))

if __name__ == '__main__':
    main()
