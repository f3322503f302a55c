import logging

import streamlit as st

from artifact_pipeline import ResponseArtifactPipeline
from config import load_config, setup_logging
from lens_model import SimulationParameters
from service_client import LensServiceClient, SubmissionCycle

logger = logging.getLogger(__name__)


@st.cache_resource
def get_config():
    config = load_config()
    setup_logging(config.log_level, config.log_file)
    logger.info("Using lens service at %s", config.endpoint)
    return config


def init_lens_params():
    st.session_state['lens_params'] = SimulationParameters()


def init_lens_cycle():
    config = get_config()
    client = LensServiceClient(config.endpoint, timeout=config.timeout_s)
    pipeline = ResponseArtifactPipeline(client, max_workers=config.max_workers)
    st.session_state['lens_cycle'] = SubmissionCycle(pipeline)


def ensure_session():
    # module code runs once per process, session state is per browser session
    if 'lens_params' not in st.session_state: init_lens_params()
    if 'lens_cycle' not in st.session_state: init_lens_cycle()


def get_params() -> SimulationParameters:
    ensure_session()
    return st.session_state['lens_params']


def update_params(operation, *args):
    ensure_session()
    st.session_state['lens_params'] = operation(st.session_state['lens_params'], *args)


def get_cycle() -> SubmissionCycle:
    ensure_session()
    return st.session_state['lens_cycle']
