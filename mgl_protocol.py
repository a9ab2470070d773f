#!/usr/bin/env python3

# Copyright 2020 Google LLC
# SPDX-License-Identifier: MIT

import argparse
import functools
import logging
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path

from mako.lookup import TemplateLookup
from mako.template import Template

from glheader import GLHeaderParser
from glregistry import GLRegistry, GenerationError
from glxml import GLXmlParser
from mgl_overrides import OVERRIDE_MODULES, OverrideTracker

MGL_PROTOCOL_DIR = Path(__file__).resolve().parent
MGL_TEMPLATE_DIR = MGL_PROTOCOL_DIR.joinpath('templates')
MGL_TEMPLATE_LOOKUP = TemplateLookup(str(MGL_TEMPLATE_DIR))

MGL_DEFAULT_NAMESPACE = 'multigl'
MGL_BUFFER_NAME = 'm_Buffer'
MGL_RESOURCE_MANAGER = 'm_Resources'

MGL_BANNER = '/* This file is generated by mgl_protocol.py. */\n\n'

_l = logging.getLogger(__name__)

class Gen:
    # smallest first
    COMMAND_ID_TYPES = [
        (8, 'uint8_t'),
        (16, 'uint16_t'),
        (32, 'uint32_t'),
    ]

    def __init__(self, reg, tracker, namespace=MGL_DEFAULT_NAMESPACE):
        self.reg = reg
        self.tracker = tracker
        self.namespace = namespace

        self.buffer_name = MGL_BUFFER_NAME
        self.resource_manager = MGL_RESOURCE_MANAGER

        self.functions = list(reg.functions.values())

        # command ids follow registry order
        self.command_ids = {}
        for func in self.functions:
            assert func.short_name not in self.command_ids
            self.command_ids[func.short_name] = len(self.command_ids)
        self.command_count = len(self.command_ids)
        self.command_id_type = self.get_command_id_type(self.command_count)

    @classmethod
    def get_command_id_type(cls, count):
        # count commands plus the Count sentinel
        for bits, c_type in cls.COMMAND_ID_TYPES:
            if count + 1 <= 1 << bits:
                return c_type
        raise GenerationError('too many commands: %d' % count)

    def resource_table(self, resource):
        return '%s.%s' % (self.resource_manager, resource.table_name)

    @staticmethod
    def check(call):
        return 'MGL_CHECK(%s);' % call

    @staticmethod
    def call_arg(arg):
        if arg.is_enum:
            return 'static_cast<GLenum>(%s)' % arg.name
        return arg.name

    def call_args(self, func):
        return ', '.join(self.call_arg(arg) for arg in func.type.arguments)

    def method_decl(self, func, qualified=False):
        name = func.short_name
        if qualified:
            name = 'CommandBuffer::' + name
        return '%s %s(%s)' % (func.type.return_type, name, func.type.c_params())

    def default_writes(self, func):
        stmts = []
        for arg in func.type.arguments:
            override = self.tracker.lookup_type_write(arg.type)
            if override:
                stmts.extend(override(self, func, arg))
            else:
                stmts.append('%s.write<%s>(%s);' % (self.buffer_name, arg.type, arg.name))
        return stmts

    def default_reads(self, func):
        stmts = []
        for arg in func.type.arguments:
            override = self.tracker.lookup_type_read(arg.type)
            if override:
                stmts.extend(override(self, func, arg))
            else:
                stmts.append('%s %s = %s.read<%s>();' % (
                    arg.type, arg.name, self.buffer_name, arg.type))
        return stmts

    def _run_rules(self, func, hook, default):
        custom = None
        for rule in self.tracker.lookup(func.name):
            stmts = getattr(rule, hook)(self, func, default)
            if stmts is not None:
                if custom is None:
                    custom = []
                custom.extend(stmts)
        return custom

    def write_command_stmts(self, func):
        stmts = ['write_command(CommandId::%s);' % func.short_name]

        default = functools.partial(self.default_writes, func)
        custom = self._run_rules(func, 'generate_write', default)
        if custom is not None:
            stmts.extend(custom)
            return stmts

        stmts.extend(default())
        if func.returns():
            stmts.append('#ifdef MULTIGL_STRICT_RETURNS')
            stmts.append('#error "%s returns %s but has no write override"' % (
                func.name, func.type.return_type))
            stmts.append('#endif')
            stmts.append('return {};')
        return stmts

    def read_command_stmts(self, func):
        default = functools.partial(self.default_reads, func)
        custom = self._run_rules(func, 'generate_read', default)
        if custom is not None:
            return custom

        stmts = default()
        stmts.append(self.check('%s(%s)' % (func.name, self.call_args(func))))
        return stmts

    @staticmethod
    def format_stmts(stmts, indent_level):
        indent = '    ' * indent_level
        lines = []
        for stmt in stmts:
            # preprocessor lines stay in the first column
            if stmt.startswith('#'):
                lines.append(stmt)
            else:
                lines.append(indent + stmt)
        return '\n'.join(lines)

    def write_command_body(self, func, indent_level=1):
        return self.format_stmts(self.write_command_stmts(func), indent_level)

    def read_command_body(self, func, indent_level=1):
        return self.format_stmts(self.read_command_stmts(func), indent_level)

class GenCommon:
    def __init__(self, gen):
        self.gen = gen

    def generate(self, template):
        return template.render(
                GEN=self.gen,
                NAMESPACE=self.gen.namespace)

class GenCommandIds:
    def __init__(self, gen):
        self.gen = gen

    def generate(self, template):
        return template.render(
                GEN=self.gen,
                NAMESPACE=self.gen.namespace,
                COMMAND_ID_TYPE=self.gen.command_id_type,
                FUNCTIONS=self.gen.functions)

class GenEnumTypes:
    def __init__(self, gen):
        self.gen = gen

        # groups of the same type name are emitted once
        self.enum_types = []
        names = set()
        for group in self.gen.reg.enum_types.values():
            if group.name not in names:
                names.add(group.name)
                self.enum_types.append(group)

    def generate(self, template):
        return template.render(
                GEN=self.gen,
                NAMESPACE=self.gen.namespace,
                ENUM_TYPES=self.enum_types)

class GenResources:
    def __init__(self, gen):
        self.gen = gen

        self.resource_types = self.gen.tracker.resource_types

    def generate(self, template):
        return template.render(
                GEN=self.gen,
                NAMESPACE=self.gen.namespace,
                RESOURCE_TYPES=self.resource_types)

class GenCommandBuffer:
    def __init__(self, gen):
        self.gen = gen

        # emit an access label only when it changes
        self.entries = []
        current = 'public'
        for func in self.gen.functions:
            label = None
            if func.access != current:
                label = func.access
                current = func.access
            self.entries.append((label, func))

    def generate(self, template):
        return template.render(
                GEN=self.gen,
                NAMESPACE=self.gen.namespace,
                ENTRIES=self.entries,
                FUNCTIONS=self.gen.functions)

class GenCommands:
    def __init__(self, gen):
        self.gen = gen

    def generate(self, template):
        return template.render(
                GEN=self.gen,
                NAMESPACE=self.gen.namespace,
                FUNCTIONS=self.gen.functions)

# (generator, template, output subdirectory)
MGL_OUTPUTS = [
    (GenCommandIds,    'gl_function_enums.hpp',       'include'),
    (GenEnumTypes,     'gl_enum_types.hpp',           'include'),
    (GenCommon,        'raw_rw_buffer.hpp',           'include'),
    (GenCommon,        'slot_map.hpp',                'include'),
    (GenResources,     'resource_manager.hpp',        'include'),
    (GenCommon,        'gl_check.hpp',                'include'),
    (GenCommandBuffer, 'gl_command_buffer.hpp',       'include'),
    (GenCommands,      'gl_command_buffer_write.cpp', 'src'),
    (GenCommands,      'gl_command_buffer_read.cpp',  'src'),
]

def get_args(argv=None):
    parser = argparse.ArgumentParser(
            description='Generate a GL command buffer protocol.')
    parser.add_argument('--header', help='Path to the glad header.',
                        required=True)
    parser.add_argument('--xml', help='Path to gl.xml.')
    parser.add_argument('--outdir', help='Where to write the files.',
                        required=True)
    parser.add_argument('--banner', help='Path to the banner file.')
    parser.add_argument('--namespace', default=MGL_DEFAULT_NAMESPACE,
                        help='C++ namespace of the generated code.')
    parser.add_argument('--jobs', type=int, default=1,
                        help='Number of files written in parallel.')
    parser.add_argument('--verbose', action='store_true',
                        help='Log per-entry diagnostics.')
    return parser.parse_args(argv)

def get_generators(gen):
    generators = {}
    for cls, _, _ in MGL_OUTPUTS:
        if cls not in generators:
            generators[cls] = cls(gen)
    return generators

def get_file_banner(filename):
    banner = None
    if filename:
        with open(filename, 'rb') as f:
            banner = f.read()
    if not banner:
        banner = MGL_BANNER.encode()

    return banner

def get_template(template_name):
    path = MGL_TEMPLATE_DIR.joinpath(template_name)
    if not path.is_file():
        raise GenerationError('missing template %s' % template_name)
    return Template(filename=str(path), lookup=MGL_TEMPLATE_LOOKUP,
                    output_encoding='utf-8')

def parse_registry(header_lines, xml_source=None, prefix='gl'):
    """Run the header extractor, then the XML extractor, and freeze."""
    reg = GLRegistry(prefix)
    GLHeaderParser(reg).parse(header_lines)
    if xml_source is not None:
        GLXmlParser(reg).parse(xml_source)
    reg.freeze()
    return reg

def build_gen(reg, modules=None, namespace=MGL_DEFAULT_NAMESPACE):
    """Apply the override modules to reg and return the emitter."""
    if modules is None:
        modules = OVERRIDE_MODULES
    tracker = OverrideTracker().initialize(reg, modules)
    reg = tracker.apply(reg)
    return Gen(reg, tracker, namespace)

def render_outputs(gen):
    """Render every output to bytes, keyed by its relative path."""
    generators = get_generators(gen)
    outputs = {}
    for cls, name, subdir in MGL_OUTPUTS:
        outputs['%s/%s' % (subdir, name)] = generators[cls].generate(get_template(name))
    return outputs

def _generate_file(generator, name, path, banner):
    output = generator.generate(get_template(name))
    with open(path, 'wb') as f:
        f.write(banner)
        f.write(output)
    return path

def generate_files(gen, outdir, banner, jobs=1):
    """Write every output; all writes finish before a failure is raised."""
    generators = get_generators(gen)
    outdir = Path(outdir)
    for subdir in sorted({subdir for _, _, subdir in MGL_OUTPUTS}):
        outdir.joinpath(subdir).mkdir(parents=True, exist_ok=True)

    written = []
    failed = []
    with ThreadPoolExecutor(max_workers=max(jobs, 1)) as executor:
        futures = {}
        for cls, name, subdir in MGL_OUTPUTS:
            path = outdir.joinpath(subdir, name)
            future = executor.submit(_generate_file, generators[cls], name, path, banner)
            futures[future] = name

        for future in as_completed(futures):
            name = futures[future]
            try:
                path = future.result()
            except Exception as e:
                _l.error('failed to generate %s: %s', name, e)
                failed.append(name)
                continue
            _l.info('created %s', path)
            written.append(path)

    if failed:
        raise GenerationError('failed to generate %s' % ', '.join(sorted(failed)))
    return sorted(written)

def main(argv=None):
    args = get_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(levelname)s: %(name)s: %(message)s')

    try:
        with open(args.header, 'r', encoding='utf-8') as f:
            reg = parse_registry(f, args.xml)
        gen = build_gen(reg, namespace=args.namespace)
        generate_files(gen, args.outdir, get_file_banner(args.banner), args.jobs)
    except GenerationError as e:
        _l.error('%s', e)
        return 1

    _l.info('generated %d commands into %s', gen.command_count, args.outdir)
    return 0

if __name__ == '__main__':
    sys.exit(main())
