# Copyright 2020 Google LLC
# SPDX-License-Identifier: MIT

"""Python model of the emitted protocol.

RawRWBuffer, SlotMap, ResourceManager and CommandBuffer behave like
raw_rw_buffer.hpp, slot_map.hpp, resource_manager.hpp and the generated
CommandBuffer, with assertions turned into ProtocolError exceptions.
"""

import collections
import logging
import re
import struct
import threading

from mgl_overrides import CreateObjectRule, DeleteResourceRule, GenResourceRule

_l = logging.getLogger(__name__)

class ProtocolError(Exception):
    pass

class BufferUnderrunError(ProtocolError):
    pass

class InvalidHandleError(ProtocolError):
    pass

class UnknownCommandError(ProtocolError):
    pass

class Handle(collections.namedtuple('Handle', ['generation', 'index'])):
    """(generation, index) packed into one 64-bit word."""

    __slots__ = ()

    def pack(self):
        return (self.generation << 32) | self.index

    @classmethod
    def unpack(cls, value):
        return cls(value >> 32, value & 0xffffffff)

class WireType:
    """A fixed-size value with C layout, described by a struct format.

    Single-field formats carry plain values, multi-field formats carry
    tuples laid out like the equivalent C struct, trailing padding included.
    """

    FIELD_RE = re.compile(r'(\d*)([a-zA-Z?])')

    def __init__(self, name, fmt, to_wire=None, from_wire=None):
        self.name = name
        self.fmt = fmt
        self._struct = struct.Struct('@' + fmt)
        self.to_wire = to_wire
        self.from_wire = from_wire

        fields = self.FIELD_RE.findall(fmt)
        self.field_count = sum(1 if c in 'sp' else int(n or 1)
                               for n, c in fields if c != 'x')
        self.alignment = max([struct.calcsize('@' + c) for _, c in fields
                              if c not in 'spx'] or [1])
        self.size = self._struct.size
        self.size += (self.alignment - self.size % self.alignment) % self.alignment

    def pack(self, value):
        if self.to_wire:
            value = self.to_wire(value)
        if self.field_count == 1:
            data = self._struct.pack(value)
        else:
            data = self._struct.pack(*value)
        return data + bytes(self.size - len(data))

    def unpack_from(self, data, offset):
        values = self._struct.unpack_from(data, offset)
        value = values[0] if self.field_count == 1 else values
        if self.from_wire:
            value = self.from_wire(value)
        return value

    def __repr__(self):
        return 'WireType(%r, %r)' % (self.name, self.fmt)

POINTER = WireType('pointer', 'P')
HANDLE = WireType('handle', 'Q', Handle.pack, Handle.unpack)
ENUM = WireType('GLenum', 'I')

GL_WIRE_TYPES = {
    'GLenum': ENUM,
    'GLboolean': WireType('GLboolean', 'B'),
    'GLbitfield': WireType('GLbitfield', 'I'),
    'GLbyte': WireType('GLbyte', 'b'),
    'GLubyte': WireType('GLubyte', 'B'),
    'GLchar': WireType('GLchar', 'b'),
    'GLshort': WireType('GLshort', 'h'),
    'GLushort': WireType('GLushort', 'H'),
    'GLhalf': WireType('GLhalf', 'H'),
    'GLint': WireType('GLint', 'i'),
    'GLuint': WireType('GLuint', 'I'),
    'GLsizei': WireType('GLsizei', 'i'),
    'GLfixed': WireType('GLfixed', 'i'),
    'GLfloat': WireType('GLfloat', 'f'),
    'GLclampf': WireType('GLclampf', 'f'),
    'GLdouble': WireType('GLdouble', 'd'),
    'GLclampd': WireType('GLclampd', 'd'),
    'GLint64': WireType('GLint64', 'q'),
    'GLuint64': WireType('GLuint64', 'Q'),
    'GLintptr': WireType('GLintptr', 'n'),
    'GLsizeiptr': WireType('GLsizeiptr', 'n'),
    'GLsync': POINTER,
    'GLDEBUGPROC': POINTER,
    'GLeglImageOES': POINTER,
    'char': WireType('char', 'b'),
    'int': WireType('int', 'i'),
    'unsigned int': WireType('unsigned int', 'I'),
    'float': WireType('float', 'f'),
    'double': WireType('double', 'd'),
}

COMMAND_ID_WIRE_TYPES = {
    'uint8_t': WireType('uint8_t', 'B'),
    'uint16_t': WireType('uint16_t', 'H'),
    'uint32_t': WireType('uint32_t', 'I'),
}

def wire_type_for(c_type, enum_types=()):
    """Map a C argument type of the registry to its WireType."""
    c_type = c_type.strip()
    if c_type.endswith('*'):
        return POINTER
    if c_type.endswith('Handle'):
        return HANDLE
    if c_type in enum_types:
        return ENUM
    if c_type.startswith('const '):
        c_type = c_type[len('const '):]
    if c_type not in GL_WIRE_TYPES:
        raise KeyError('no wire type for %s' % c_type)
    return GL_WIRE_TYPES[c_type]

class RawRWBuffer:
    def __init__(self):
        self.data = bytearray()
        self.write_idx = 0
        self.read_idx = 0

    @staticmethod
    def get_padding(idx, align):
        return (align - idx % align) % align

    def write(self, wire_type, value):
        padding = self.get_padding(self.write_idx, wire_type.alignment)
        self.data.extend(bytes(padding))
        self.data.extend(wire_type.pack(value))
        self.write_idx = len(self.data)

    def read(self, wire_type):
        idx = self.read_idx + self.get_padding(self.read_idx, wire_type.alignment)
        if idx + wire_type.size > self.write_idx:
            raise BufferUnderrunError('reading %s at %d past write cursor %d' % (
                wire_type.name, idx, self.write_idx))
        value = wire_type.unpack_from(self.data, idx)
        self.read_idx = idx + wire_type.size
        return value

    def has_commands(self):
        return self.read_idx < self.write_idx

    def reset(self):
        del self.data[:]
        self.write_idx = 0
        self.read_idx = 0

class _Slot:
    __slots__ = ('value', 'generation', 'occupied')

    def __init__(self):
        self.value = None
        self.generation = 0
        self.occupied = False

class SlotMap:
    """Generational slot map; every call holds the table lock."""

    def __init__(self, name='slot_map'):
        self.name = name
        self.generation = 0

        self._lock = threading.Lock()
        self._slots = []
        self._free_list = []

    def create(self, value=None):
        with self._lock:
            if self._free_list:
                index = self._free_list.pop()
            else:
                index = len(self._slots)
                self._slots.append(_Slot())
                self.generation += 1

            slot = self._slots[index]
            slot.value = value
            slot.occupied = True
            slot.generation += 1
            return Handle(slot.generation, index)

    def _is_valid(self, handle):
        return (0 <= handle.index < len(self._slots) and
                self._slots[handle.index].occupied and
                self._slots[handle.index].generation == handle.generation)

    def _check(self, handle):
        if not self._is_valid(handle):
            raise InvalidHandleError('%s: invalid handle %r' % (self.name, handle))
        return self._slots[handle.index]

    def is_valid(self, handle):
        with self._lock:
            return self._is_valid(handle)

    def destroy(self, handle):
        with self._lock:
            slot = self._check(handle)
            slot.value = None
            slot.occupied = False
            self._free_list.append(handle.index)
            self.generation += 1

    def get(self, handle):
        with self._lock:
            return self._check(handle).value

    def set(self, handle, value):
        with self._lock:
            self._check(handle).value = value

    def __len__(self):
        with self._lock:
            return sum(1 for slot in self._slots if slot.occupied)

class ResourceManager:
    """One SlotMap per resource type, as attributes named <Kind>s."""

    def __init__(self, resource_types):
        self.resource_types = list(resource_types)
        self.by_handle_type = {}
        for resource in self.resource_types:
            setattr(self, resource.table_name, SlotMap(resource.table_name))
            self.by_handle_type[resource.handle_type] = resource

    def table(self, resource):
        return getattr(self, resource.table_name)

    def table_for_handle(self, handle_type):
        return self.table(self.by_handle_type[handle_type])

class Command:
    """Marshalling of one command, derived from a post-override signature."""

    def __init__(self, command_id, short_name, arguments, creates=None, destroys=None):
        self.command_id = command_id
        self.short_name = short_name
        # [(name, c_type, wire_type)]
        self.arguments = arguments
        self.creates = creates
        self.destroys = destroys

    @classmethod
    def from_function(cls, command_id, func, rules, enum_types):
        arguments = [(arg.name, arg.type, wire_type_for(arg.type, enum_types))
                     for arg in func.type.arguments]

        creates = None
        destroys = None
        for rule in rules:
            if isinstance(rule, (GenResourceRule, CreateObjectRule)):
                creates = rule.resource
            elif isinstance(rule, DeleteResourceRule):
                destroys = rule.resource
        return cls(command_id, func.short_name, arguments, creates, destroys)

class CommandBuffer:
    IDLE = 'Idle'
    DRAINING = 'Draining'

    def __init__(self, commands, id_type, resource_types, handlers=None,
                 check_error=None):
        self.commands = list(commands)
        self.by_name = {cmd.short_name: cmd for cmd in self.commands}
        self.id_type = id_type
        self.resources = ResourceManager(resource_types)
        self.handlers = handlers if handlers is not None else {}
        self.check_error = check_error

        self.buffer = RawRWBuffer()
        self.state = self.IDLE

    @classmethod
    def from_gen(cls, gen, handlers=None, check_error=None):
        """Build the model for the registry and rules of a mgl_protocol.Gen."""
        enum_types = {group.name for group in gen.reg.enum_types.values()}
        commands = []
        for func in gen.functions:
            commands.append(Command.from_function(gen.command_ids[func.short_name],
                                                  func, gen.tracker.lookup(func.name),
                                                  enum_types))
        return cls(commands, COMMAND_ID_WIRE_TYPES[gen.command_id_type],
                   gen.tracker.resource_types, handlers, check_error)

    def has_commands(self):
        return self.buffer.has_commands()

    def enqueue(self, short_name, *args):
        """Producer side of a generated method."""
        cmd = self.by_name[short_name]
        if len(args) != len(cmd.arguments):
            raise TypeError('%s takes %d arguments (%d given)' % (
                short_name, len(cmd.arguments), len(args)))

        self.state = self.DRAINING
        self.buffer.write(self.id_type, cmd.command_id)
        for (_, _, wire_type), value in zip(cmd.arguments, args):
            self.buffer.write(wire_type, value)

        if cmd.creates:
            handle = self.resources.table(cmd.creates).create(0)
            self.buffer.write(HANDLE, handle)
            return handle
        return None

    def _read_arguments(self, cmd):
        values = []
        handles = []
        for _, c_type, wire_type in cmd.arguments:
            value = self.buffer.read(wire_type)
            if wire_type is HANDLE:
                handles.append((c_type, value))
                value = self.resources.table_for_handle(c_type).get(value)
            values.append(value)
        return values, handles

    def _process_command(self, cmd):
        values, handles = self._read_arguments(cmd)
        created = self.buffer.read(HANDLE) if cmd.creates else None

        handler = self.handlers.get(cmd.short_name)
        result = None
        if handler:
            result = handler(*values)
        else:
            _l.debug('no handler for %s', cmd.short_name)

        if self.check_error:
            err = self.check_error(cmd.short_name)
            if err:
                _l.warning('%s failed with GL error 0x%04x', cmd.short_name, err)

        if created is not None:
            self.resources.table(cmd.creates).set(created, result)
        if cmd.destroys:
            for c_type, handle in handles:
                self.resources.table_for_handle(c_type).destroy(handle)

    def process_commands(self):
        """Consumer side: drain every queued command, then reset."""
        count = 0
        while self.buffer.has_commands():
            command_id = self.buffer.read(self.id_type)
            if command_id >= len(self.commands):
                self.buffer.reset()
                self.state = self.IDLE
                raise UnknownCommandError('unknown command id %d' % command_id)
            self._process_command(self.commands[command_id])
            count += 1

        self.buffer.reset()
        self.state = self.IDLE
        return count
