"""Supabase client factory. Client is cached via Streamlit."""
import streamlit as st
from supabase import create_client, Client

from edventure import config


def _env_client() -> Client:
    if not config.SUPABASE_URL or not config.SUPABASE_KEY:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(config.SUPABASE_URL, config.SUPABASE_KEY)


@st.cache_resource
def get_supabase() -> Client:
    return _env_client()


def get_supabase_uncached() -> Client:
    """For CLI/scripts (no Streamlit context)."""
    return _env_client()
