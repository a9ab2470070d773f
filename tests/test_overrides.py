# Copyright 2020 Google LLC
# SPDX-License-Identifier: MIT

import logging

import pytest

from glregistry import GenerationError
from mgl_overrides import (OVERRIDE_MODULES, DeleteResourceRule, GLOverride,
                           GenResourceRule, OverrideTracker, ResourceType,
                           RetypeArgumentsRule)

def _signature(reg, name):
    func = reg.functions[name]
    return (func.type.return_type,
            [(arg.type, arg.name) for arg in func.type.arguments])

@pytest.fixture
def applied(registry):
    tracker = OverrideTracker().initialize(registry)
    return tracker, tracker.apply(registry)

def test_resource_type_names():
    res = ResourceType('VertexArray')
    assert res.handle_type == 'VertexArrayHandle'
    assert res.table_name == 'VertexArrays'
    assert res.tag == 'VertexArrayTag'
    assert res.native_type == 'GLuint'

def test_default_modules_register_resources(applied):
    tracker, _ = applied
    assert [res.name for res in tracker.resource_types] == [
        'Buffer', 'Framebuffer', 'ShaderProgram', 'Shader', 'Texture', 'VertexArray']
    for res in tracker.resource_types:
        assert tracker.lookup_type_read(res.handle_type)
        assert tracker.lookup_type_write(res.handle_type)

def test_gen_rules(applied):
    _, reg = applied
    assert 'glGenTextures' not in reg.functions
    assert _signature(reg, 'glGenTexture') == ('TextureHandle', [])
    assert _signature(reg, 'glGenBuffer') == ('BufferHandle', [])
    # glCreateTextures keeps its target
    assert _signature(reg, 'glCreateTexture') == (
        'TextureHandle', [('TextureTarget', 'target')])
    assert reg.functions['glCreateTexture'].short_name == 'CreateTexture'

def test_rename_keeps_registry_order(applied):
    _, reg = applied
    assert list(reg.functions)[:4] == [
        'glBindTexture', 'glGenTexture', 'glCreateTexture', 'glDeleteTexture']

def test_delete_rules(applied):
    _, reg = applied
    assert _signature(reg, 'glDeleteTexture') == ('void', [('TextureHandle', 'texture')])
    assert _signature(reg, 'glDeleteBuffer') == ('void', [('BufferHandle', 'buffer')])
    assert _signature(reg, 'glDeleteShader') == ('void', [('ShaderHandle', 'shader')])
    assert _signature(reg, 'glDeleteProgram') == (
        'void', [('ShaderProgramHandle', 'program')])

def test_create_object_rules(applied):
    _, reg = applied
    assert _signature(reg, 'glCreateShader') == ('ShaderHandle', [('ShaderType', 'type')])
    assert _signature(reg, 'glCreateProgram') == ('ShaderProgramHandle', [])
    assert reg.functions['glCreateShader'].returns_handle()

def test_retype_arguments(applied):
    _, reg = applied
    assert _signature(reg, 'glBindTexture') == (
        'void', [('TextureTarget', 'target'), ('TextureHandle', 'texture')])
    assert _signature(reg, 'glBindBuffer') == (
        'void', [('BufferTargetARB', 'target'), ('BufferHandle', 'buffer')])
    assert _signature(reg, 'glAttachShader') == (
        'void', [('ShaderProgramHandle', 'program'), ('ShaderHandle', 'shader')])
    assert _signature(reg, 'glUseProgram') == (
        'void', [('ShaderProgramHandle', 'program')])

def test_retype_skips_enum_arguments(applied):
    _, reg = applied
    # glActiveTexture(GLenum texture) names a texture unit
    assert _signature(reg, 'glActiveTexture') == ('void', [('TextureUnit', 'texture')])

def test_retype_skips_enum_arguments_without_xml(header_registry):
    tracker = OverrideTracker().initialize(header_registry)
    reg = tracker.apply(header_registry)
    assert _signature(reg, 'glActiveTexture') == ('void', [('GLenum', 'texture')])

def test_shader_source(applied):
    _, reg = applied
    assert _signature(reg, 'glShaderSource') == ('void', [
        ('ShaderHandle', 'shader'), ('const GLchar *', 'string'), ('GLint', 'length')])

def test_rules_rekeyed_after_rename(applied):
    tracker, _ = applied
    assert not tracker.lookup('glGenTextures')
    rules = tracker.lookup('glGenTexture')
    assert any(isinstance(rule, GenResourceRule) for rule in rules)
    assert any(isinstance(rule, DeleteResourceRule)
               for rule in tracker.lookup('glDeleteBuffer'))

def test_missing_function_rules_ignored(applied):
    tracker, reg = applied
    assert 'glCreateBuffer' not in reg.functions
    assert not tracker.lookup('glCreateBuffers')

def test_apply_twice(registry):
    tracker = OverrideTracker().initialize(registry)
    tracker.apply(registry)
    with pytest.raises(GenerationError):
        tracker.apply(registry)

def test_apply_freezes(registry):
    OverrideTracker().initialize(registry, []).apply(registry)
    assert registry.frozen

def test_type_override_last_wins(caplog):
    tracker = OverrideTracker()
    first = object()
    second = object()
    tracker.register_type_read('GLsync', first)
    with caplog.at_level(logging.DEBUG, logger='mgl_overrides'):
        tracker.register_type_read('GLsync', second)
        tracker.register_type_write('GLsync', first)
    assert tracker.lookup_type_read('GLsync') is second
    assert tracker.lookup_type_write('GLsync') is first
    assert 'read override for GLsync replaced' in caplog.text
    assert 'write override' not in caplog.text

def test_rules_run_in_registration_order(registry):
    order = []
    tracker = OverrideTracker()
    tracker.register('glFinish', mutate=lambda reg, func: order.append('first'))
    tracker.register('glFinish', mutate=lambda reg, func: order.append('second'))
    tracker.apply(registry)
    assert order == ['first', 'second']

def test_malformed_mutation_aborts(registry):
    def drop_name(reg, func):
        func.type.arguments[0].name = ''

    tracker = OverrideTracker()
    tracker.register('glClearColor', mutate=drop_name)
    with pytest.raises(GenerationError):
        tracker.apply(registry)

def test_custom_module(registry):
    class ClearOverrides(GLOverride):
        def init_overrides(self, tracker, reg):
            tracker.add_rule(RetypeArgumentsRule('glClearColor', 'GLdouble', indices=(0, 3)))

    tracker = OverrideTracker().initialize(registry, [ClearOverrides])
    reg = tracker.apply(registry)
    assert [arg.type for arg in reg.functions['glClearColor'].type.arguments] == [
        'GLdouble', 'GLfloat', 'GLfloat', 'GLdouble']

def test_override_modules_are_classes():
    assert all(issubclass(cls, GLOverride) for cls in OVERRIDE_MODULES)
