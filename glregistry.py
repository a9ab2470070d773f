# Copyright 2020 Google LLC
# SPDX-License-Identifier: MIT

import copy

class GenerationError(Exception):
    """Raised when the registry is left in a state no code can be generated from."""

def is_identifier_char(c):
    return c.isalnum() or c == '_'

class GLArgument:
    """Split an argument string like 'const void *data' into

    type := 'const void *'
    name := 'data'
    """

    def __init__(self, ty, name, is_enum=False):
        self.type = ty
        self.name = name
        self.is_enum = is_enum

    @staticmethod
    def from_c(arg_string):
        arg_string = arg_string.strip()
        for i in range(len(arg_string) - 1, -1, -1):
            if not is_identifier_char(arg_string[i]):
                ty = arg_string[:i + 1].strip()
                name = arg_string[i + 1:].strip()
                if not ty or not name:
                    return None
                return GLArgument(ty, name)
        # a lone token has no name
        return None

    def to_c(self):
        if self.type.endswith('*'):
            return self.type + self.name
        return self.type + ' ' + self.name

    def __repr__(self):
        return 'GLArgument(%r, %r)' % (self.type, self.name)

class GLFunctionType:
    """A function-pointer typedef, e.g. PFNGLBINDTEXTUREPROC."""

    def __init__(self, typedef_name, return_type, arguments=None):
        self.typedef_name = typedef_name
        self.return_type = return_type
        self.is_return_enum = False
        self.arguments = arguments if arguments is not None else []

    def returns(self):
        return self.return_type != 'void'

    def find_argument(self, name):
        for arg in self.arguments:
            if arg.name == name:
                return arg
        return None

    def c_params(self, separator=', '):
        return separator.join(arg.to_c() for arg in self.arguments)

    def __str__(self):
        args = ', '.join('(%s) [%s]' % (arg.type, arg.name)
                         for arg in self.arguments)
        return '%s %s (%s)' % (self.return_type, self.typedef_name, args)

class GLFunction:
    PUBLIC = 'public'
    PRIVATE = 'private'

    def __init__(self, name, ty, prefix='gl'):
        self.prefix = prefix
        self.type = ty
        self.access = self.PUBLIC
        self.name = name

    @property
    def name(self):
        return self._name

    @name.setter
    def name(self, value):
        self._name = value
        self.short_name = self.derive_short_name(value, self.prefix)

    @staticmethod
    def derive_short_name(name, prefix):
        if prefix and name.startswith(prefix) and len(name) > len(prefix):
            name = name[len(prefix):]
        return name[0].upper() + name[1:]

    def returns(self):
        return self.type.returns()

    def returns_handle(self):
        return self.type.return_type.endswith('Handle')

    def __str__(self):
        return '%s %s (%s)' % (self.type.return_type, self.name,
                               self.type.c_params())

class GLEnumGroup:
    """Represent a gl.xml <group> narrowed to the symbols the header defines."""

    def __init__(self, name):
        self.name = name
        self.values = {}

    def add_value(self, key, symbol):
        # first spelling wins when two symbols translate to the same key
        if key not in self.values:
            self.values[key] = symbol

class GLRegistry:
    """The functions, typedefs, defines and enum groups of one GL API."""

    def __init__(self, prefix='gl'):
        self.prefix = prefix
        self.defines = set()
        self.function_types = {}
        self.functions = {}
        self.enum_types = {}

        self.frozen = False
        self._short_names = {}

    def _check_mutable(self):
        if self.frozen:
            raise GenerationError('registry is frozen')

    def add_define(self, name):
        self._check_mutable()
        self.defines.add(name)

    def add_function_type(self, ty):
        self._check_mutable()
        if ty.typedef_name in self.function_types:
            raise KeyError('function type %s already declared' % ty.typedef_name)
        self.function_types[ty.typedef_name] = ty

    def get_function_type(self, typedef_name):
        if typedef_name not in self.function_types:
            raise KeyError('unknown function type %s' % typedef_name)
        return self.function_types[typedef_name]

    def add_function(self, name, typedef_name):
        """Bind name to a copy of a declared function type."""
        self._check_mutable()
        if name in self.functions:
            raise KeyError('function %s already declared' % name)

        ty = copy.deepcopy(self.get_function_type(typedef_name))
        func = GLFunction(name, ty, self.prefix)
        if func.short_name in self._short_names:
            raise KeyError('short name %s of %s collides with %s' % (
                func.short_name, name, self._short_names[func.short_name]))

        self.functions[name] = func
        self._short_names[func.short_name] = name
        return func

    def find_functions(self, prefix):
        return [func for name, func in self.functions.items()
                if name.startswith(prefix)]

    def rename_function(self, func, new_name):
        """Rename func, keeping its position in iteration order."""
        old_name = func.name
        if new_name == old_name:
            return
        if new_name in self.functions:
            raise GenerationError('cannot rename %s to existing function %s' % (
                old_name, new_name))

        self.functions = {
            (new_name if name == old_name else name): f
            for name, f in self.functions.items()
        }
        del self._short_names[func.short_name]
        func.name = new_name
        self._short_names[func.short_name] = new_name

    def freeze(self):
        self.frozen = True

    def validate(self):
        """Sanity check before emission."""
        short_names = {}
        for name, func in self.functions.items():
            if func.name != name:
                raise GenerationError('function %s is keyed as %s' % (func.name, name))
            if func.short_name in short_names:
                raise GenerationError('short name %s of %s collides with %s' % (
                    func.short_name, name, short_names[func.short_name]))
            short_names[func.short_name] = name

            if not func.type.return_type:
                raise GenerationError('%s has no return type' % name)

            arg_names = set()
            for arg in func.type.arguments:
                if not arg.type or not arg.name or not arg.name.isidentifier():
                    raise GenerationError('%s has a malformed argument %r' % (name, arg))
                if arg.name in arg_names:
                    raise GenerationError('%s has two arguments named %s' % (name, arg.name))
                arg_names.add(arg.name)
