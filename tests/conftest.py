# Copyright 2020 Google LLC
# SPDX-License-Identifier: MIT

import io
import sys
import textwrap
from pathlib import Path

import pytest

MGL_PROTOCOL_DIR = Path(__file__).resolve().parent.parent
if str(MGL_PROTOCOL_DIR) not in sys.path:
    sys.path.insert(0, str(MGL_PROTOCOL_DIR))

from glheader import GLHeaderParser
from glregistry import GLRegistry
from glxml import GLXmlParser
from mgl_protocol import build_gen, parse_registry

SAMPLE_HEADER = textwrap.dedent('''\
    #ifndef __glad_h_
    #define __glad_h_
    #define GL_NO_ERROR 0
    #define GL_INVALID_ENUM 0x0500
    #define GL_TEXTURE_2D 0x0DE1
    #define GL_TEXTURE_3D 0x806F
    #define GL_TEXTURE_CUBE_MAP_POSITIVE_X 0x8515
    #define GL_TEXTURE0 0x84C0
    #define GL_ARRAY_BUFFER 0x8892
    #define GL_ELEMENT_ARRAY_BUFFER 0x8893
    #define GL_FRAGMENT_SHADER 0x8B30
    #define GL_VERTEX_SHADER 0x8B31
    typedef void (APIENTRYP PFNGLBINDTEXTUREPROC)(GLenum target, GLuint texture);
    GLAPI PFNGLBINDTEXTUREPROC glad_glBindTexture;
    #define glBindTexture glad_glBindTexture
    typedef void (APIENTRYP PFNGLGENTEXTURESPROC)(GLsizei n, GLuint *textures);
    GLAPI PFNGLGENTEXTURESPROC glad_glGenTextures;
    typedef void (APIENTRYP PFNGLCREATETEXTURESPROC)(GLenum target, GLsizei n, GLuint *textures);
    GLAPI PFNGLCREATETEXTURESPROC glad_glCreateTextures;
    typedef void (APIENTRYP PFNGLDELETETEXTURESPROC)(GLsizei n, const GLuint *textures);
    GLAPI PFNGLDELETETEXTURESPROC glad_glDeleteTextures;
    typedef void (APIENTRYP PFNGLACTIVETEXTUREPROC)(GLenum texture);
    GLAPI PFNGLACTIVETEXTUREPROC glad_glActiveTexture;
    typedef void (APIENTRYP PFNGLGENBUFFERSPROC)(GLsizei n, GLuint *buffers);
    GLAPI PFNGLGENBUFFERSPROC glad_glGenBuffers;
    typedef void (APIENTRYP PFNGLBINDBUFFERPROC)(GLenum target, GLuint buffer);
    GLAPI PFNGLBINDBUFFERPROC glad_glBindBuffer;
    typedef void (APIENTRYP PFNGLBUFFERDATAPROC)(GLenum target, GLsizeiptr size, const void *data, GLenum usage);
    GLAPI PFNGLBUFFERDATAPROC glad_glBufferData;
    typedef void (APIENTRYP PFNGLDELETEBUFFERSPROC)(GLsizei n, const GLuint *buffers);
    GLAPI PFNGLDELETEBUFFERSPROC glad_glDeleteBuffers;
    typedef GLuint (APIENTRYP PFNGLCREATESHADERPROC)(GLenum type);
    GLAPI PFNGLCREATESHADERPROC glad_glCreateShader;
    typedef void (APIENTRYP PFNGLSHADERSOURCEPROC)(GLuint shader, GLsizei count, const GLchar *const*string, const GLint *length);
    GLAPI PFNGLSHADERSOURCEPROC glad_glShaderSource;
    typedef void (APIENTRYP PFNGLDELETESHADERPROC)(GLuint shader);
    GLAPI PFNGLDELETESHADERPROC glad_glDeleteShader;
    typedef GLuint (APIENTRYP PFNGLCREATEPROGRAMPROC)(void);
    GLAPI PFNGLCREATEPROGRAMPROC glad_glCreateProgram;
    typedef void (APIENTRYP PFNGLATTACHSHADERPROC)(GLuint program, GLuint shader);
    GLAPI PFNGLATTACHSHADERPROC glad_glAttachShader;
    typedef void (APIENTRYP PFNGLUSEPROGRAMPROC)(GLuint program);
    GLAPI PFNGLUSEPROGRAMPROC glad_glUseProgram;
    typedef void (APIENTRYP PFNGLDELETEPROGRAMPROC)(GLuint program);
    GLAPI PFNGLDELETEPROGRAMPROC glad_glDeleteProgram;
    typedef GLenum (APIENTRYP PFNGLGETERRORPROC)(void);
    GLAPI PFNGLGETERRORPROC glad_glGetError;
    typedef void (APIENTRYP PFNGLFINISHPROC)(void);
    GLAPI PFNGLFINISHPROC glad_glFinish;
    typedef void (APIENTRYP PFNGLCLEARCOLORPROC)(GLfloat red, GLfloat green, GLfloat blue, GLfloat alpha);
    GLAPI PFNGLCLEARCOLORPROC glad_glClearColor;
    typedef void (APIENTRYP PFNGLBROKENPROC)(GLint);
    GLAPI PFNGLMISSINGPROC glad_glMissing;
    #endif
''')

SAMPLE_XML = textwrap.dedent('''\
    <?xml version="1.0" encoding="UTF-8"?>
    <registry>
        <groups>
            <group name="TextureTarget">
                <enum name="GL_TEXTURE_2D"/>
                <enum name="GL_TEXTURE_3D"/>
            </group>
        </groups>
        <enums namespace="GL">
            <enum value="0" name="GL_NO_ERROR" group="ErrorCode"/>
            <enum value="0x0500" name="GL_INVALID_ENUM" group="ErrorCode"/>
            <enum value="0x0DE1" name="GL_TEXTURE_2D" group="TextureTarget,CopyImageSubDataTarget"/>
            <enum value="0x8515" name="GL_TEXTURE_CUBE_MAP_POSITIVE_X" group="TextureTarget"/>
            <enum value="0x8C1A" name="GL_TEXTURE_2D_ARRAY" group="TextureTarget"/>
            <enum value="0x84C0" name="GL_TEXTURE0" group="TextureUnit"/>
            <enum value="0x8892" name="GL_ARRAY_BUFFER" group="BufferTargetARB"/>
            <enum value="0x8893" name="GL_ELEMENT_ARRAY_BUFFER" group="BufferTargetARB"/>
            <enum value="0x8B30" name="GL_FRAGMENT_SHADER" group="ShaderType"/>
            <enum value="0x8B31" name="GL_VERTEX_SHADER" group="ShaderType"/>
        </enums>
        <commands namespace="GL">
            <command>
                <proto>void <name>glBindTexture</name></proto>
                <param group="TextureTarget"><ptype>GLenum</ptype> <name>target</name></param>
                <param class="texture"><ptype>GLuint</ptype> <name>texture</name></param>
            </command>
            <command>
                <proto>void <name>glCreateTextures</name></proto>
                <param group="TextureTarget"><ptype>GLenum</ptype> <name>target</name></param>
                <param><ptype>GLsizei</ptype> <name>n</name></param>
                <param><ptype>GLuint</ptype> *<name>textures</name></param>
            </command>
            <command>
                <proto>void <name>glActiveTexture</name></proto>
                <param group="TextureUnit"><ptype>GLenum</ptype> <name>texture</name></param>
            </command>
            <command>
                <proto>void <name>glBindBuffer</name></proto>
                <param group="BufferTargetARB"><ptype>GLenum</ptype> <name>target</name></param>
                <param class="buffer"><ptype>GLuint</ptype> <name>buffer</name></param>
            </command>
            <command>
                <proto>void <name>glBufferData</name></proto>
                <param group="BufferTargetARB"><ptype>GLenum</ptype> <name>target</name></param>
                <param><ptype>GLsizeiptr</ptype> <name>size</name></param>
                <param>const void *<name>data</name></param>
                <param group="BufferUsageARB"><ptype>GLenum</ptype> <name>usage</name></param>
            </command>
            <command>
                <proto><ptype>GLuint</ptype> <name>glCreateShader</name></proto>
                <param group="ShaderType"><ptype>GLenum</ptype> <name>type</name></param>
            </command>
            <command>
                <proto group="ErrorCode"><ptype>GLenum</ptype> <name>glGetError</name></proto>
            </command>
            <command>
                <proto>void <name>glNotInHeader</name></proto>
            </command>
        </commands>
    </registry>
''')

# int foo(int a, float b), no prefix
FOO_HEADER = textwrap.dedent('''\
    typedef int (APIENTRYP PFNFOOPROC)(int a, float b);
    GLAPI PFNFOOPROC glad_foo;
''')

@pytest.fixture
def header_text():
    return SAMPLE_HEADER

@pytest.fixture
def xml_text():
    return SAMPLE_XML

@pytest.fixture
def header_registry():
    reg = GLRegistry()
    GLHeaderParser(reg).parse(SAMPLE_HEADER.splitlines())
    return reg

@pytest.fixture
def registry(header_registry):
    GLXmlParser(header_registry).parse_string(SAMPLE_XML)
    return header_registry

@pytest.fixture
def make_gen():
    def _make_gen(modules=None, namespace='multigl'):
        reg = parse_registry(SAMPLE_HEADER.splitlines(), io.StringIO(SAMPLE_XML))
        return build_gen(reg, modules, namespace)
    return _make_gen

@pytest.fixture
def gen(make_gen):
    return make_gen()

@pytest.fixture
def foo_gen():
    reg = parse_registry(FOO_HEADER.splitlines(), prefix='')
    return build_gen(reg, modules=[])

@pytest.fixture
def input_files(tmp_path):
    header = tmp_path / 'glad.h'
    header.write_text(SAMPLE_HEADER, encoding='utf-8')
    xml = tmp_path / 'gl.xml'
    xml.write_text(SAMPLE_XML, encoding='utf-8')
    return {
        'header': header,
        'xml': xml,
        'outdir': tmp_path / 'out',
    }
