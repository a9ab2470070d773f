# Copyright 2020 Google LLC
# SPDX-License-Identifier: MIT

import logging
import re

from glregistry import GLArgument, GLFunctionType

_l = logging.getLogger(__name__)

class GLHeaderParser:
    """Read function typedefs, exported symbols and defines from a glad header.

    Three line shapes matter:

        #define GL_TEXTURE_2D 0x0DE1
        typedef void (APIENTRYP PFNGLBINDTEXTUREPROC)(GLenum target, GLuint texture);
        GLAPI PFNGLBINDTEXTUREPROC glad_glBindTexture;

    everything else is ignored.
    """

    SYMBOL_PREFIX = 'glad_'

    TYPEDEF_RE = re.compile(
        r'^typedef\s+(?P<ret>[^(]+?)\s*\(\s*APIENTRYP\s+(?P<name>\w+)\s*\)'
        r'\s*\((?P<args>[^)]*)\)\s*;')
    SYMBOL_RE = re.compile(r'^GLAPI\s+(?P<type>\w+)\s+(?P<name>\w+)\s*;')
    DEFINE_RE = re.compile(r'^#define\s+(?P<name>\w+)\s+\S')

    def __init__(self, reg):
        self.reg = reg
        self.define_prefix = reg.prefix.upper() + '_'

        self.type_count = 0
        self.function_count = 0
        self.skipped = 0

    def _skip(self, line_num, msg):
        _l.warning('line %d: %s', line_num, msg)
        self.skipped += 1

    @staticmethod
    def parse_arguments(args_string):
        """Return the list of GLArgument, or None if one is malformed."""
        args_string = args_string.strip()
        if not args_string or args_string == 'void':
            return []

        args = []
        for arg_string in args_string.split(','):
            arg = GLArgument.from_c(arg_string)
            if not arg:
                return None
            args.append(arg)
        return args

    def _parse_typedef(self, line, line_num):
        m = self.TYPEDEF_RE.match(line)
        if not m:
            self._skip(line_num, 'malformed function type declaration: %s' % line.strip())
            return

        name = m.group('name')
        args = self.parse_arguments(m.group('args'))
        if args is None:
            self._skip(line_num, 'unnamed or malformed argument in %s' % name)
            return

        ty = GLFunctionType(name, m.group('ret').strip(), args)
        try:
            self.reg.add_function_type(ty)
        except KeyError as e:
            self._skip(line_num, e.args[0])
            return
        self.type_count += 1

    def _parse_symbol(self, line, line_num):
        m = self.SYMBOL_RE.match(line)
        if not m:
            self._skip(line_num, 'malformed symbol declaration: %s' % line.strip())
            return

        type_name = m.group('type')
        symbol = m.group('name')
        if not symbol.startswith(self.SYMBOL_PREFIX + self.reg.prefix):
            self._skip(line_num, 'failed to read function of type %s - invalid name %s' % (
                type_name, symbol))
            return

        name = symbol[len(self.SYMBOL_PREFIX):]
        try:
            self.reg.add_function(name, type_name)
        except KeyError as e:
            # unknown typedef or duplicate: fatal for this entry only
            self._skip(line_num, e.args[0])
            return
        self.function_count += 1

    def _parse_define(self, line, line_num):
        m = self.DEFINE_RE.match(line)
        if m and m.group('name').startswith(self.define_prefix):
            self.reg.add_define(m.group('name'))

    def parse(self, lines):
        """Parse an iterable of header lines into the registry."""
        for line_num, line in enumerate(lines, 1):
            if line.startswith('typedef') and 'APIENTRYP' in line:
                self._parse_typedef(line, line_num)
            elif line.startswith('GLAPI'):
                self._parse_symbol(line, line_num)
            elif line.startswith('#define'):
                self._parse_define(line, line_num)

        _l.info('parsed %d function types, %d functions, %d defines (%d lines skipped)',
                self.type_count, self.function_count, len(self.reg.defines),
                self.skipped)
        return self.reg

    def parse_file(self, path):
        with open(path, 'r', encoding='utf-8') as f:
            return self.parse(f)
