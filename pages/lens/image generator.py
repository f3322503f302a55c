from common import get_config, get_cycle, get_params, update_params
from artifact_pipeline import display_name
import lens_model as lm
import streamlit as st
import logging

logger = logging.getLogger("common")

PLOT_TYPE_LABELS = {
    lm.PlotType.BOTH: "Both plots",
    lm.PlotType.LINE: "Line plot only",
    lm.PlotType.POLAR: "Polar plot only",
}

if 'layer_editor_rev' not in st.session_state: st.session_state['layer_editor_rev'] = 0

def reset_layer_editor():
    st.session_state['layer_editor_rev'] += 1

def change_layers(operation):
    update_params(operation)
    reset_layer_editor()

st.set_page_config(page_title="Lens image generator", layout="wide")
st.header("Green Tensor Image Generator")

config = get_config()
cycle = get_cycle()
params = get_params()

col_cfg1, col_cfg2, col_cfg3 = st.columns(3)
with col_cfg1:
    radius_ratio = st.number_input(
        "Lens radius ratio (radiusRatio)",
        min_value=1,
        value=max(params.radius_ratio, 1),
        step=1,
    )
    update_params(lm.set_scalar, "radius_ratio", radius_ratio)
with col_cfg2:
    st.write("Layer count (layers_count)")
    c1, c2, c3 = st.columns([1, 1, 1])
    c1.button("➖", on_click=change_layers, args=(lm.remove_layer,), width='stretch',
              disabled=params.layer_count <= lm.MIN_LAYER_COUNT)
    c2.markdown(f"<h4 style='text-align: center'>{params.layer_count}</h4>", unsafe_allow_html=True)
    c3.button("➕", on_click=change_layers, args=(lm.add_layer,), width='stretch')
with col_cfg3:
    plot_type = st.selectbox(
        "Plot type (plot_type)",
        options=list(PLOT_TYPE_LABELS),
        index=list(PLOT_TYPE_LABELS).index(params.plot_type),
        format_func=PLOT_TYPE_LABELS.get,
    )
    update_params(lm.set_scalar, "plot_type", plot_type.value)

st.subheader("Layer parameters")
st.caption("The last layer (air) is fixed: radius, dielectric constant and permeability stay at 1.")

params = get_params()
editor_key = f"layer_editor_{params.layer_count}_{st.session_state['layer_editor_rev']}"
edited_df = st.data_editor(
    lm.layers_frame(params),
    column_config={
        "Layer": st.column_config.TextColumn("Layer", disabled=True),
        "Radius": st.column_config.NumberColumn(
            "Radius", min_value=0.0, max_value=1.0, step=0.01, format="%.3f"
        ),
        "Dielectric constant": st.column_config.NumberColumn(
            "Dielectric constant", step=0.01, format="%.3f"
        ),
        "Magnetic permeability": st.column_config.NumberColumn(
            "Magnetic permeability", min_value=0.0, step=0.01, format="%.3f"
        ),
    },
    num_rows="fixed",
    hide_index=True,
    width='stretch',
    key=editor_key,
)
new_params = lm.apply_layers_frame(params, edited_df)
st.session_state['lens_params'] = new_params
if not lm.frame_matches(new_params, edited_df):
    # an edit hit the air row (or was coerced), redraw from the model
    reset_layer_editor()
    st.rerun()

state = cycle.state
col_run1, col_run2 = st.columns([3, 1])
with col_run1:
    generate = st.button(
        "Generating..." if state.pending else "▶️ Generate images",
        disabled=state.pending,
        width='stretch',
        key="generate lens images",
    )
with col_run2:
    if st.button("🗑️ Clear results", width='stretch', key="clear lens results"):
        cycle.reset()
        st.rerun()

if generate:
    with st.spinner("Generating..."):
        state = cycle.run(get_params())
    logger.info("Submission #%d finished: %s", state.sequence, state.status.value)

if state.error:
    st.error(f"**Error:**\n\n{state.error}")

if state.artifacts is not None:
    artifacts = state.artifacts
    st.download_button(
        label="📥 Download ZIP with images",
        data=cycle.pipeline.resolve(artifacts.archive_handle),
        file_name=config.archive_name,
        mime=artifacts.archive_handle.mime_type,
        width='stretch',
    )
    if artifacts.images:
        st.subheader("Results")
        columns = st.columns(min(3, len(artifacts.images)))
        for i, image in enumerate(artifacts.images):
            with columns[i % len(columns)]:
                st.markdown(f"#### {display_name(image.name)}")
                st.image(cycle.pipeline.resolve(image.handle), caption=image.name)
    else:
        st.warning("The archive contains no images.")
