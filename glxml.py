# Copyright 2020 Google LLC
# SPDX-License-Identifier: MIT

import logging
import xml.etree.ElementTree as ET

from glregistry import GLEnumGroup

_l = logging.getLogger(__name__)

# segments that keep their upper case spelling
ACRONYMS = {
    'AMD', 'APPLE', 'ARB', 'ASTC', 'ATI', 'BGR', 'BGRA', 'BPTC', 'DXT1',
    'DXT3', 'DXT5', 'EAC', 'ETC2', 'EXT', 'HDR', 'ID', 'INTEL', 'KHR', 'LOD',
    'MESA', 'NV', 'OES', 'RGB', 'RGBA', 'RGTC', 'S3TC', 'SGIS', 'SGIX',
    'SRGB', 'UV',
}

# XML group names whose derived type name is ambiguous in the generated code
GROUP_NAME_EXCEPTIONS = {
    'Boolean': 'BooleanValue',
    'Buffer': 'ClearBufferType',
    'String': 'StringName',
    'Texture': 'TextureUnitName',
}

def screaming_snake_to_pascal_case(snake):
    """Convert TEXTURE_CUBE_MAP_POSITIVE_X to TextureCubeMapPositiveX."""
    segments = []
    for segment in snake.split('_'):
        if not segment:
            continue
        if segment in ACRONYMS:
            segments.append(segment)
            continue

        chars = []
        cap = True
        for c in segment:
            if c.isdigit():
                chars.append(c)
                # TEXTURE_2D -> Texture2D
                cap = True
                continue
            chars.append(c.upper() if cap else c.lower())
            cap = False
        segments.append(''.join(chars))

    name = ''.join(segments)
    if name and name[0].isdigit():
        name = 'E' + name
    return name

def group_type_name(group_name):
    return GROUP_NAME_EXCEPTIONS.get(group_name, group_name)

class GLXmlParser:
    """Refine a header-populated GLRegistry with the enum groups of gl.xml."""

    ENUM_TYPE = 'GLenum'

    def __init__(self, reg):
        self.reg = reg
        self.define_prefix = reg.prefix.upper() + '_'

        # XML group name -> member symbols, document order
        self.groups = {}
        self._unresolved = set()

        self.found = 0
        self.skipped = 0

    def _add_group_member(self, group_name, symbol):
        members = self.groups.setdefault(group_name, [])
        if symbol not in members:
            members.append(symbol)

    def _parse_groups(self, groups_elem):
        """Parse <groups>."""
        for group_elem in groups_elem.iterfind('group'):
            name = group_elem.attrib.get('name')
            if not name:
                _l.warning('skipping <group> without a name')
                continue
            self.groups.setdefault(name, [])
            for enum_elem in group_elem.iterfind('enum'):
                if 'name' in enum_elem.attrib:
                    self._add_group_member(name, enum_elem.attrib['name'])

    def _parse_enums(self, enums_elem):
        """Parse group attributions of <enums>/<enum group="A,B">."""
        for enum_elem in enums_elem.iterfind('enum'):
            if 'group' not in enum_elem.attrib or 'name' not in enum_elem.attrib:
                continue
            for group_name in enum_elem.attrib['group'].split(','):
                group_name = group_name.strip()
                if group_name:
                    self._add_group_member(group_name, enum_elem.attrib['name'])

    def get_typed_enum(self, group_name):
        """Resolve group_name to a GLEnumGroup, once, and cache it."""
        enums = self.reg.enum_types
        if group_name in enums:
            return enums[group_name]
        if group_name in self._unresolved:
            return None

        if group_name not in self.groups:
            _l.debug('group %s is not described by the XML', group_name)
            self._unresolved.add(group_name)
            return None

        group = GLEnumGroup(group_type_name(group_name))
        for symbol in self.groups[group_name]:
            if symbol not in self.reg.defines:
                continue
            key = screaming_snake_to_pascal_case(symbol[len(self.define_prefix):])
            group.add_value(key, symbol)

        enums[group_name] = group
        return group

    def _parse_command(self, command_elem):
        proto_elem = command_elem.find('proto')
        name_elem = proto_elem.find('name') if proto_elem is not None else None
        if name_elem is None or not name_elem.text:
            _l.warning('skipping malformed <command>')
            self.skipped += 1
            return

        func = self.reg.functions.get(name_elem.text)
        if not func:
            return
        self.found += 1

        ptype_elem = proto_elem.find('ptype')
        if (ptype_elem is not None and ptype_elem.text == self.ENUM_TYPE and
                'group' in proto_elem.attrib):
            group = self.get_typed_enum(proto_elem.attrib['group'])
            if group:
                func.type.return_type = group.name
                func.type.is_return_enum = True

        for param_elem in command_elem.iterfind('param'):
            ptype_elem = param_elem.find('ptype')
            param_name_elem = param_elem.find('name')
            if (ptype_elem is None or ptype_elem.text != self.ENUM_TYPE or
                    param_name_elem is None or 'group' not in param_elem.attrib):
                continue

            group = self.get_typed_enum(param_elem.attrib['group'])
            if not group:
                continue

            arg = func.type.find_argument(param_name_elem.text)
            if arg:
                _l.debug('found enum %s for %s(%s)', group.name,
                         func.short_name, arg.name)
                arg.type = group.name
                arg.is_enum = True

    def parse_root(self, root):
        # group attributions first since commands may precede <enums>
        for child in root:
            if child.tag == 'groups':
                self._parse_groups(child)
            elif child.tag == 'enums':
                self._parse_enums(child)

        for child in root:
            if child.tag == 'commands':
                for command_elem in child.iterfind('command'):
                    self._parse_command(command_elem)

        if self.found != len(self.reg.functions):
            _l.warning('function count mismatch between XML (%d) and header (%d)',
                       self.found, len(self.reg.functions))
        else:
            _l.info('all %d functions found in XML', self.found)

        return self.reg

    def parse(self, source):
        """Parse a gl.xml path or file object."""
        tree = ET.parse(source)
        return self.parse_root(tree.getroot())

    def parse_string(self, text):
        return self.parse_root(ET.fromstring(text))
