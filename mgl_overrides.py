# Copyright 2020 Google LLC
# SPDX-License-Identifier: MIT

import logging

from glregistry import GLArgument, GenerationError

_l = logging.getLogger(__name__)

class OverrideRule:
    """Customization of one function.

    mutate_signature() rewrites the registry entry before emission.
    generate_read() and generate_write() return a list of C++ statements, or
    None when the rule leaves that side to the default code.  default() in
    both returns the default per-argument statements.
    """

    def __init__(self, function_name):
        self.function_name = function_name

    def mutate_signature(self, reg, func):
        pass

    def generate_read(self, gen, func, default):
        return None

    def generate_write(self, gen, func, default):
        return None

class CallbackRule(OverrideRule):
    def __init__(self, function_name, mutate=None, read=None, write=None):
        super().__init__(function_name)
        self.mutate = mutate
        self.read = read
        self.write = write

    def mutate_signature(self, reg, func):
        if self.mutate:
            self.mutate(reg, func)

    def generate_read(self, gen, func, default):
        if self.read:
            return self.read(gen, func, default)
        return None

    def generate_write(self, gen, func, default):
        if self.write:
            return self.write(gen, func, default)
        return None

class OverrideTracker:
    def __init__(self):
        self.overrides = {}
        self.type_reads = {}
        self.type_writes = {}
        self.resource_types = []
        self.applied = False

    def add_rule(self, rule):
        self.overrides.setdefault(rule.function_name, []).append(rule)
        return rule

    def register(self, function_name, mutate=None, read=None, write=None):
        return self.add_rule(CallbackRule(function_name, mutate, read, write))

    def register_type_read(self, ty, generator):
        # last registration wins
        if ty in self.type_reads:
            _l.debug('read override for %s replaced', ty)
        self.type_reads[ty] = generator

    def register_type_write(self, ty, generator):
        if ty in self.type_writes:
            _l.debug('write override for %s replaced', ty)
        self.type_writes[ty] = generator

    def add_resource_type(self, resource):
        if resource not in self.resource_types:
            self.resource_types.append(resource)

    def lookup(self, function_name):
        return self.overrides.get(function_name, [])

    def lookup_type_read(self, ty):
        return self.type_reads.get(ty)

    def lookup_type_write(self, ty):
        return self.type_writes.get(ty)

    def initialize(self, reg, modules=None):
        """Let every override module register its rules."""
        if modules is None:
            modules = OVERRIDE_MODULES
        for cls in modules:
            cls().init_overrides(self, reg)
        return self

    def apply(self, reg):
        """Run every signature mutation and return the mutated registry.

        Rules registered for the same function run in registration order.
        Rules are rekeyed to the post-mutation function names.
        """
        if self.applied:
            raise GenerationError('overrides already applied')
        reg.freeze()

        overrides = {}
        for name, rules in self.overrides.items():
            func = reg.functions.get(name)
            if not func:
                _l.debug('%d override(s) for missing function %s ignored',
                         len(rules), name)
                continue
            for rule in rules:
                rule.mutate_signature(reg, func)
            overrides.setdefault(func.name, []).extend(rules)

        self.overrides = overrides
        self.applied = True

        reg.validate()
        return reg

class ResourceType:
    """A kind of GL object tracked by a slot map of native names."""

    def __init__(self, name, native_type='GLuint'):
        self.name = name
        self.native_type = native_type

    @property
    def handle_type(self):
        return self.name + 'Handle'

    @property
    def table_name(self):
        return self.name + 's'

    @property
    def tag(self):
        return self.name + 'Tag'

    def __repr__(self):
        return 'ResourceType(%r)' % self.name

class RetypeArgumentsRule(OverrideRule):
    """Retype the arguments with the given names or positions.

    With native_type set, only arguments still of that type are retyped, so
    glActiveTexture(GLenum texture) keeps its enum.
    """

    def __init__(self, function_name, ty, names=(), indices=(), native_type=None):
        super().__init__(function_name)
        self.type = ty
        self.names = names
        self.indices = indices
        self.native_type = native_type

    def mutate_signature(self, reg, func):
        for i, arg in enumerate(func.type.arguments):
            if self.native_type and arg.type != self.native_type:
                continue
            if arg.name in self.names or i in self.indices:
                arg.type = self.type
                arg.is_enum = False

class GenResourceRule(OverrideRule):
    """glGenBuffers(n, buffers) becomes BufferHandle GenBuffer().

    The first keep_args arguments survive and are passed through before the
    count, e.g. glCreateTextures(target, 1, &texture).
    """

    def __init__(self, function_name, resource, new_name, keep_args=0):
        super().__init__(function_name)
        self.resource = resource
        self.new_name = new_name
        self.keep_args = keep_args

    def mutate_signature(self, reg, func):
        reg.rename_function(func, self.new_name)
        del func.type.arguments[self.keep_args:]
        func.type.return_type = self.resource.handle_type
        func.type.is_return_enum = False

    def generate_write(self, gen, func, default):
        table = gen.resource_table(self.resource)
        stmts = default()
        stmts.append('auto handle = %s.create(0);' % table)
        stmts.append('%s.write<%s>(handle);' % (gen.buffer_name, self.resource.handle_type))
        stmts.append('return handle;')
        return stmts

    def generate_read(self, gen, func, default):
        table = gen.resource_table(self.resource)
        args = [gen.call_arg(arg) for arg in func.type.arguments] + ['1', '&object']
        stmts = default()
        stmts.append('auto handle = %s.read<%s>();' % (gen.buffer_name, self.resource.handle_type))
        stmts.append('%s object = 0;' % self.resource.native_type)
        stmts.append(gen.check('%s(%s)' % (self.function_name, ', '.join(args))))
        stmts.append('%s.set(handle, object);' % table)
        return stmts

class CreateObjectRule(OverrideRule):
    """glCreateShader(type) returns a ShaderHandle instead of a name."""

    def __init__(self, function_name, resource):
        super().__init__(function_name)
        self.resource = resource

    def mutate_signature(self, reg, func):
        func.type.return_type = self.resource.handle_type
        func.type.is_return_enum = False

    def generate_write(self, gen, func, default):
        table = gen.resource_table(self.resource)
        stmts = default()
        stmts.append('auto handle = %s.create(0);' % table)
        stmts.append('%s.write<%s>(handle);' % (gen.buffer_name, self.resource.handle_type))
        stmts.append('return handle;')
        return stmts

    def generate_read(self, gen, func, default):
        table = gen.resource_table(self.resource)
        stmts = default()
        stmts.append('auto handle = %s.read<%s>();' % (gen.buffer_name, self.resource.handle_type))
        stmts.append('%s object = 0;' % self.resource.native_type)
        stmts.append(gen.check('object = %s(%s)' % (
            self.function_name, gen.call_args(func))))
        stmts.append('%s.set(handle, object);' % table)
        return stmts

class DeleteResourceRule(OverrideRule):
    """Delete the native object, then release its slot.

    Batched entry points like glDeleteBuffers(n, buffers) are reduced to one
    handle, glDeleteProgram(program) only changes its argument type.
    """

    def __init__(self, function_name, resource, arg_name, new_name=None):
        super().__init__(function_name)
        self.resource = resource
        self.arg_name = arg_name
        self.new_name = new_name

    def mutate_signature(self, reg, func):
        if self.new_name:
            reg.rename_function(func, self.new_name)
        func.type.arguments = [GLArgument(self.resource.handle_type, self.arg_name)]

    def generate_read(self, gen, func, default):
        table = gen.resource_table(self.resource)
        if self.new_name:
            call = '%s(1, &object)' % self.function_name
        else:
            call = '%s(object)' % self.function_name
        return ['auto handle = %s.read<%s>();' % (gen.buffer_name, self.resource.handle_type),
                '%s object = %s.get(handle);' % (self.resource.native_type, table),
                gen.check(call),
                '%s.destroy(handle);' % table]

class GLOverride:
    """Base of the override modules."""

    def init_overrides(self, tracker, reg):
        pass

class ResourceOverride(GLOverride):
    """Rules shared by every GL object kind.

    Subclasses set RESOURCE and ARGUMENT_NAMES, the argument names that
    always carry an object of that kind.
    """

    RESOURCE = None
    ARGUMENT_NAMES = []

    def init_overrides(self, tracker, reg):
        tracker.add_resource_type(self.RESOURCE)
        tracker.register_type_read(self.RESOURCE.handle_type, self.read_handle)
        tracker.register_type_write(self.RESOURCE.handle_type, self.write_handle)

    def read_handle(self, gen, func, arg):
        handle_type = self.RESOURCE.handle_type
        return ['%s %sHandle = %s.read<%s>();' % (handle_type, arg.name,
                                                 gen.buffer_name, handle_type),
                '%s %s = %s.get(%sHandle);' % (self.RESOURCE.native_type, arg.name,
                                               gen.resource_table(self.RESOURCE),
                                               arg.name)]

    def write_handle(self, gen, func, arg):
        return ['%s.write<%s>(%s);' % (gen.buffer_name, self.RESOURCE.handle_type, arg.name)]

    def register_gen(self, tracker, function_name, new_name, keep_args=0):
        tracker.add_rule(GenResourceRule(function_name, self.RESOURCE, new_name, keep_args))

    def register_delete(self, tracker, function_name, arg_name, new_name=None):
        tracker.add_rule(DeleteResourceRule(function_name, self.RESOURCE, arg_name, new_name))

    def register_retype_arguments(self, tracker, reg):
        for func in reg.functions.values():
            for arg in func.type.arguments:
                if (arg.name in self.ARGUMENT_NAMES and
                        arg.type == self.RESOURCE.native_type):
                    tracker.add_rule(RetypeArgumentsRule(
                        func.name, self.RESOURCE.handle_type,
                        names=self.ARGUMENT_NAMES,
                        native_type=self.RESOURCE.native_type))
                    break

    def register_standard(self, tracker, reg):
        """glCreate<Kind>s, glGen<Kind>s, glDelete<Kind>s and argument retyping."""
        name = self.RESOURCE.name
        self.register_gen(tracker, 'glCreate%ss' % name, 'glCreate%s' % name)
        self.register_gen(tracker, 'glGen%ss' % name, 'glGen%s' % name)
        self.register_delete(tracker, 'glDelete%ss' % name,
                             self.ARGUMENT_NAMES[0], 'glDelete%s' % name)
        self.register_retype_arguments(tracker, reg)

class BufferOverrides(ResourceOverride):
    RESOURCE = ResourceType('Buffer')
    ARGUMENT_NAMES = ['buffer']

    def init_overrides(self, tracker, reg):
        super().init_overrides(tracker, reg)
        self.register_standard(tracker, reg)

class FramebufferOverrides(ResourceOverride):
    RESOURCE = ResourceType('Framebuffer')
    ARGUMENT_NAMES = ['framebuffer']

    def init_overrides(self, tracker, reg):
        super().init_overrides(tracker, reg)
        self.register_standard(tracker, reg)

class VertexArrayOverrides(ResourceOverride):
    RESOURCE = ResourceType('VertexArray')
    ARGUMENT_NAMES = ['vaobj']

    def init_overrides(self, tracker, reg):
        super().init_overrides(tracker, reg)
        self.register_standard(tracker, reg)
        tracker.add_rule(RetypeArgumentsRule(
            'glBindVertexArray', self.RESOURCE.handle_type, indices=(0,)))

class TextureOverrides(ResourceOverride):
    RESOURCE = ResourceType('Texture')
    ARGUMENT_NAMES = ['texture']

    def init_overrides(self, tracker, reg):
        super().init_overrides(tracker, reg)
        # glCreateTextures(target, n, textures) keeps its target
        self.register_gen(tracker, 'glCreateTextures', 'glCreateTexture', keep_args=1)
        self.register_gen(tracker, 'glGenTextures', 'glGenTexture')
        self.register_delete(tracker, 'glDeleteTextures', 'texture', 'glDeleteTexture')
        self.register_retype_arguments(tracker, reg)

class ShaderOverrides(ResourceOverride):
    RESOURCE = ResourceType('Shader')
    ARGUMENT_NAMES = ['shader']

    def init_overrides(self, tracker, reg):
        super().init_overrides(tracker, reg)
        tracker.add_rule(CreateObjectRule('glCreateShader', self.RESOURCE))
        self.register_delete(tracker, 'glDeleteShader', 'shader')
        tracker.register('glShaderSource',
                         mutate=self.mutate_shader_source,
                         read=self.read_shader_source)
        self.register_retype_arguments(tracker, reg)

    def mutate_shader_source(self, reg, func):
        # (shader, count, string, length) -> (shader, string, length)
        args = func.type.arguments
        if len(args) != 4:
            raise GenerationError('unexpected signature %s' % func)
        args[0].type = self.RESOURCE.handle_type
        del args[1]
        args[1].type = 'const GLchar *'
        args[2].type = 'GLint'

    def read_shader_source(self, gen, func, default):
        args = func.type.arguments
        stmts = default()
        stmts.append(gen.check('glShaderSource(%s, 1, &%s, &%s)' % (
            args[0].name, args[1].name, args[2].name)))
        return stmts

class ProgramOverrides(ResourceOverride):
    RESOURCE = ResourceType('ShaderProgram')
    ARGUMENT_NAMES = ['program']

    def init_overrides(self, tracker, reg):
        super().init_overrides(tracker, reg)
        tracker.add_rule(CreateObjectRule('glCreateProgram', self.RESOURCE))
        self.register_delete(tracker, 'glDeleteProgram', 'program')
        self.register_retype_arguments(tracker, reg)

OVERRIDE_MODULES = [
    BufferOverrides,
    FramebufferOverrides,
    ProgramOverrides,
    ShaderOverrides,
    TextureOverrides,
    VertexArrayOverrides,
]
